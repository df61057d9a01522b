"""
Enveloppes JSON et dépendances communes aux routes
"""

from typing import Any, Optional

from fastapi import Request

from salesverse.config import is_valid_id, now_iso
from salesverse.container import Services
from salesverse.errors import ValidationError


def get_services(request: Request) -> Services:
    return request.app.state.services


def ok(data: Any = None, message: str = "Success") -> dict:
    return {
        "success": True,
        "message": message,
        "data": data,
        "timestamp": now_iso(),
    }


def paginated(result: dict, message: str = "Success") -> dict:
    """result = sortie de services.pagination.paginate"""
    return {
        **ok(result["data"], message),
        "total": result["total"],
        "page": result["page"],
        "limit": result["limit"],
        "totalPages": result["totalPages"],
    }


def failure(message: str, details: Optional[list] = None) -> dict:
    body = {"success": False, "message": message, "timestamp": now_iso()}
    if details:
        body["details"] = details
    return body


def check_id(value: str, label: str) -> str:
    """400 'Invalid <label> ID format' si l'id n'est pas un uuid"""
    if not is_valid_id(value):
        raise ValidationError(f"Invalid {label} ID format")
    return value
