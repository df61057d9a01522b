"""
Historique champ par champ (audit)
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class ChangeType(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class HistoryChange(BaseModel):
    """Transition d'un champ : old_value -> new_value"""
    field: str
    old_value: Any = None
    new_value: Any = None
