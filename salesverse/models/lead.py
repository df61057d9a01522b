"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SALESVERSE CRM - Modèle Lead                                                ║
║                                                                              ║
║  RÈGLES FONDAMENTALES:                                                       ║
║  1. Le statut est TOUJOURS dérivé de (progress, disposition, sub_disposition)║
║  2. current_lead_status = dernier élément de lead_status_history             ║
║  3. lead_status_history est append-only (jamais réordonné ni tronqué)        ║
║  4. Toute mutation passe par LeadService (historique champ par champ)        ║
║  5. Suppression = soft delete (is_deleted + deleted_at)                      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import re
from enum import Enum
from typing import Optional, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ==================== CATALOGUES ====================

LEAD_PROGRESS_OPTIONS = [
    "New Lead Entry",
    "Initial Contact",
    "Follow Up",
    "Meeting Scheduled",
    "Meeting Completed",
    "Negotiation",
    "Documentation",
]

LEAD_DISPOSITION_OPTIONS = [
    "Interested",
    "Not Interested",
    "Need More Info",
    "Cannot Afford",
    "Wrong Number",
    "Already Purchased",
    "Technical Issue",
]

LEAD_SUB_DISPOSITION_OPTIONS = {
    "Interested": ["Ready to Buy", "Comparing Options", "Needs Time", "Waiting for Documents"],
    "Not Interested": ["Budget Constraints", "Not Right Time", "Found Alternative", "No Requirement"],
    "Need More Info": [
        "Product Details",
        "Pricing Information",
        "Documentation Required",
        "Technical Specifications",
    ],
    "Cannot Afford": ["High Price", "No Financing", "Income Issues", "Other Priorities"],
    "Wrong Number": ["Invalid Contact", "Changed Number", "Not Reachable"],
    "Already Purchased": ["From Competitor", "Different Product", "Recent Purchase"],
    "Technical Issue": ["Call Dropped", "System Error", "Network Issue"],
}

# Champs qui déclenchent un recalcul du statut
STATUS_FIELDS = ("lead_progress", "lead_disposition", "lead_sub_disposition")

# Références vers des agents (validées actives à l'affectation)
ACTOR_FIELDS = ("allocated_to", "allocated_by", "created_by")

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class LeadStatusName(str, Enum):
    """Statuts de lead"""
    OPEN = "Open"
    DISCARDED = "Discarded"
    CONVERTED = "Converted"
    FAILED = "Failed"


VALID_LEAD_STATUSES = [s.value for s in LeadStatusName]


class LeadStatusRecord(BaseModel):
    """
    Un statut calculé. Nouveau id + horodatage à chaque calcul,
    ajouté à lead_status_history, jamais modifié ensuite.
    """
    id: str
    name: LeadStatusName
    updated_at: str
    progress: Optional[str] = None
    disposition: Optional[str] = None
    sub_disposition: Optional[str] = None


class LeadCreate(BaseModel):
    """Création d'un lead"""
    model_config = ConfigDict(extra="forbid")

    # Identité
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    date_of_birth: Optional[str] = None
    gender: Optional[Literal["Male", "Female", "Other"]] = None

    # Adresse
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    landmark: Optional[str] = None
    province: str = Field(min_length=1)
    city: str = Field(min_length=1)
    zipcode: Optional[str] = None
    is_mailing_address_same_as_permanent: bool = False
    permanent_address_line1: Optional[str] = None
    permanent_address_line2: Optional[str] = None
    permanent_landmark: Optional[str] = None
    permanent_province: Optional[str] = None
    permanent_city: Optional[str] = None
    permanent_zipcode: Optional[str] = None

    # Contact
    primary_number: str = Field(min_length=1)
    alternate_mobile_no: Optional[str] = None
    landline_no: Optional[str] = None
    email_address: str

    # Profil
    education: Optional[str] = None
    profession_type: Optional[str] = None
    income_group: Optional[str] = None
    vehicle_type: Optional[str] = None

    # Qualification
    lead_type: str = Field(min_length=1)
    stage: str = Field(min_length=1)
    lead_progress: str = Field(min_length=1)
    lead_disposition: Optional[str] = None
    lead_sub_disposition: Optional[str] = None

    # RDV
    appointment_date: Optional[str] = None
    start_time: Optional[str] = None

    # Acteurs (ids d'agents)
    allocated_to: str
    allocated_by: str
    created_by: str
    allocators_remark: Optional[str] = None
    remark_from_user: Optional[str] = None

    project_id: Optional[str] = None
    module_id: Optional[str] = None

    @field_validator("email_address")
    @classmethod
    def validate_email(cls, v):
        if not EMAIL_RE.match(v):
            raise ValueError("Invalid email address format")
        return v.strip().lower()


# Obligatoires à la création : jamais null en modification
NON_NULLABLE_FIELDS = tuple(
    name for name, field in LeadCreate.model_fields.items() if field.is_required()
) + ("is_mailing_address_same_as_permanent",)


class LeadUpdate(BaseModel):
    """
    Modification partielle. Seuls les champs envoyés sont appliqués et tracés.
    `updated_by` identifie l'auteur pour l'historique, il n'est pas stocké sur le lead.
    Un champ obligatoire à la création ne peut pas être remis à null.
    """
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    gender: Optional[Literal["Male", "Female", "Other"]] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    landmark: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    zipcode: Optional[str] = None
    is_mailing_address_same_as_permanent: Optional[bool] = None
    permanent_address_line1: Optional[str] = None
    permanent_address_line2: Optional[str] = None
    permanent_landmark: Optional[str] = None
    permanent_province: Optional[str] = None
    permanent_city: Optional[str] = None
    permanent_zipcode: Optional[str] = None
    primary_number: Optional[str] = None
    alternate_mobile_no: Optional[str] = None
    landline_no: Optional[str] = None
    email_address: Optional[str] = None
    education: Optional[str] = None
    profession_type: Optional[str] = None
    income_group: Optional[str] = None
    vehicle_type: Optional[str] = None
    lead_type: Optional[str] = None
    stage: Optional[str] = None
    lead_progress: Optional[str] = None
    lead_disposition: Optional[str] = None
    lead_sub_disposition: Optional[str] = None
    appointment_date: Optional[str] = None
    start_time: Optional[str] = None
    allocated_to: Optional[str] = None
    allocated_by: Optional[str] = None
    created_by: Optional[str] = None
    allocators_remark: Optional[str] = None
    remark_from_user: Optional[str] = None
    project_id: Optional[str] = None
    module_id: Optional[str] = None

    updated_by: Optional[str] = None

    @field_validator("email_address")
    @classmethod
    def validate_email(cls, v):
        if v is not None and not EMAIL_RE.match(v):
            raise ValueError("Invalid email address format")
        return v.strip().lower() if v else v

    @model_validator(mode="after")
    def reject_null_required(self):
        nulls = [f for f in NON_NULLABLE_FIELDS if f in self.model_fields_set and getattr(self, f) is None]
        if nulls:
            raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
        return self


class LeadOwnershipChange(BaseModel):
    """Réaffectation d'un lead"""
    allocated_to: str
    allocated_by: str


class LeadFilter(str, Enum):
    """Filtres rapides de la liste des leads"""
    TODAY = "today"
    ALL = "all"
    OPEN = "Open"
    CONVERTED = "Converted"
    DISCARDED = "Discarded"
    FAILED = "Failed"


class AdvancedLeadFilter(BaseModel):
    """Critères du filtre avancé"""
    sort_by: Literal["newest", "oldest"] = "newest"
    search_type: Optional[Literal["Name", "Mobile", "Lead ID"]] = None
    search: Optional[str] = None
    lead_status: Optional[LeadStatusName] = None
    lead_type: Optional[str] = None
    lead_progress: Optional[str] = None
    lead_disposition: Optional[str] = None
    lead_sub_disposition: Optional[str] = None
    owner_id: Optional[str] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None


class BulkLeadUpload(BaseModel):
    """Lignes déjà parsées (Excel/CSV hors périmètre)"""
    rows: List[dict]
    project_id: Optional[str] = None
