"""
Construction des filtres MongoDB (listes leads / applications / agents)
"""

import re
from typing import List, Optional

from salesverse.config import day_bounds
from salesverse.errors import ValidationError
from salesverse.models.lead import AdvancedLeadFilter, LeadFilter


NOT_DELETED = {"is_deleted": {"$ne": True}}


def text_search(search: str, fields: List[str]) -> List[dict]:
    """Clauses $or insensibles à la casse. La saisie est échappée (pas de regex utilisateur)."""
    pattern = re.escape(search.strip())
    return [{f: {"$regex": pattern, "$options": "i"}} for f in fields]


def name_search(search: str) -> dict:
    """
    Recherche par nom :
    - un mot    -> prénom OU nom
    - deux mots -> (prénom, nom) dans un sens ou dans l'autre
    """
    words = search.split()
    if len(words) < 2:
        return {"$or": text_search(search, ["first_name", "last_name"])}

    first, last = re.escape(words[0]), re.escape(" ".join(words[1:]))
    return {"$or": [
        {"first_name": {"$regex": first, "$options": "i"}, "last_name": {"$regex": last, "$options": "i"}},
        {"first_name": {"$regex": last, "$options": "i"}, "last_name": {"$regex": first, "$options": "i"}},
    ]}


def owned_by(agent_id: str) -> dict:
    """Leads créés par OU affectés à l'agent"""
    return {"$or": [{"created_by": agent_id}, {"allocated_to": agent_id}]}


def created_between(date_from: Optional[str], date_to: Optional[str]) -> Optional[dict]:
    """Plage sur created_at (ISO). date_to seule date -> jusqu'à la fin de ce jour."""
    clause = {}
    if date_from:
        clause["$gte"] = date_from
    if date_to:
        # "2024-01-31" couvre toute la journée
        clause["$lte"] = date_to + "T23:59:59.999999+00:00" if len(date_to) == 10 else date_to
    if date_from and date_to and clause["$gte"] > clause["$lte"]:
        raise ValidationError("date_from must be before date_to")
    return clause or None


def _and(*clauses) -> dict:
    clauses = [c for c in clauses if c]
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def build_lead_filter(
    agent_id: Optional[str] = None,
    lead_filter: LeadFilter = LeadFilter.ALL,
    search: Optional[str] = None
) -> dict:
    """
    Filtre de la liste rapide.
    - today        : leads créés aujourd'hui (UTC)
    - Open/...     : statut courant
    - search       : nom, email, téléphone
    """
    clauses = [NOT_DELETED]

    if agent_id:
        clauses.append(owned_by(agent_id))

    lead_filter = LeadFilter(lead_filter)
    if lead_filter == LeadFilter.TODAY:
        start, end = day_bounds()
        clauses.append({"created_at": {"$gte": start, "$lt": end}})
    elif lead_filter != LeadFilter.ALL:
        clauses.append({"current_lead_status.name": lead_filter.value})

    if search and search.strip():
        clauses.append({"$or": text_search(search, ["first_name", "last_name", "email_address", "primary_number"])})

    return _and(*clauses)


def build_advanced_lead_filter(criteria: AdvancedLeadFilter) -> dict:
    clauses = [NOT_DELETED]

    if criteria.owner_id:
        clauses.append(owned_by(criteria.owner_id))

    if criteria.search and criteria.search.strip():
        if criteria.search_type == "Lead ID":
            clauses.append({"id": criteria.search.strip()})
        elif criteria.search_type == "Mobile":
            clauses.append({"$or": text_search(criteria.search, ["primary_number", "alternate_mobile_no"])})
        elif criteria.search_type == "Name":
            clauses.append(name_search(criteria.search))
        else:
            clauses.append({"$or": text_search(
                criteria.search, ["first_name", "last_name", "email_address", "primary_number"]
            )})

    if criteria.lead_status:
        clauses.append({"current_lead_status.name": criteria.lead_status.value})

    for field in ("lead_type", "lead_progress", "lead_disposition", "lead_sub_disposition"):
        value = getattr(criteria, field)
        if value:
            clauses.append({field: value})

    date_range = created_between(criteria.date_from, criteria.date_to)
    if date_range:
        clauses.append({"created_at": date_range})

    return _and(*clauses)


def lead_sort(sort_by: str = "newest") -> list:
    return [("created_at", 1 if sort_by == "oldest" else -1)]


def build_application_filter(
    status: Optional[str] = None,
    search: Optional[str] = None,
    project_id: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None
) -> dict:
    clauses = [NOT_DELETED]

    if status:
        clauses.append({"application_status": status})
    if project_id:
        clauses.append({"project_id": project_id})
    if search and search.strip():
        clauses.append({"$or": text_search(
            search, ["first_name", "last_name", "email_address", "mobile_number", "application_id"]
        )})

    date_range = created_between(date_from, date_to)
    if date_range:
        clauses.append({"created_at": date_range})

    return _and(*clauses)
