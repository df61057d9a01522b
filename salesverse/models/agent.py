"""
Modèles Agent / Projet + références vers un agent
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .lead import EMAIL_RE


class AgentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class AgentCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    middle_name: Optional[str] = None
    email: str
    phone_number: str = Field(min_length=1)
    project_id: Optional[str] = None
    user_id: Optional[str] = None
    agent_code: Optional[str] = None  # généré depuis le projet si absent
    agent_status: AgentStatus = AgentStatus.ACTIVE
    is_team_lead: bool = False

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if not EMAIL_RE.match(v):
            raise ValueError("Invalid email address format")
        return v.strip().lower()


class AgentStatusUpdate(BaseModel):
    agent_status: AgentStatus


class AgentSummary(BaseModel):
    """Champs d'affichage d'un agent référencé"""
    model_config = ConfigDict(extra="ignore")

    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    agent_code: str = ""


def ref_id(ref) -> Optional[str]:
    """Retourne toujours l'id, quelle que soit la forme de la référence"""
    if ref is None:
        return None
    if isinstance(ref, AgentSummary):
        return ref.id
    if isinstance(ref, dict):
        return ref.get("id")
    return ref


class ProjectCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    project_name: str = Field(min_length=1)
    project_code: str = Field(min_length=1)
