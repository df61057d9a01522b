"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SALESVERSE CRM - Modèle AOB (Application Onboarding)                        ║
║                                                                              ║
║  WORKFLOW:                                                                   ║
║  applicationSubmitted -> underReview -> approved | rejected | returned       ║
║                                                                              ║
║  INVARIANTS:                                                                 ║
║  - qc_discrepancy_list == documents actuellement "reject" (1 par type)       ║
║  - "reject" exige des remarques                                              ║
║  - "approved" avec projet IMPLIQUE un agent créé                             ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from enum import Enum
from typing import Optional, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .lead import EMAIL_RE


class ApplicationStatus(str, Enum):
    APPLICATION_SUBMITTED = "applicationSubmitted"
    UNDER_REVIEW = "underReview"
    REJECTED = "rejected"
    APPROVED = "approved"
    RETURNED = "returned"


VALID_APPLICATION_STATUSES = [s.value for s in ApplicationStatus]


class DocumentStatus(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    DOCUMENT_SUBMITTED = "documentSubmitted"


VALID_DOCUMENT_FORMATS = ["pdf", "png", "jpg"]


class ApplicationCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    email_address: str = Field(min_length=1)
    mobile_number: str = Field(min_length=1)
    address: Optional[str] = None

    # Examen / antécédents assurance
    passed_life_insurance_exam: bool = False
    passed_life_insurance_exam_rating: Optional[str] = None
    passed_life_insurance_exam_date_of_exam: Optional[str] = None
    passed_life_insurance_exam_venue_of_exam: Optional[str] = None
    has_life_insurance_company: bool = False
    has_life_insurance_company_name: Optional[str] = None
    has_non_life_insurance_company: bool = False
    has_non_life_insurance_company_name: Optional[str] = None
    has_variable_insurance_company: bool = False
    has_variable_insurance_company_name: Optional[str] = None
    related_to_employee: bool = False
    related_to_employee_name: Optional[str] = None
    related_to_employee_relationship: Optional[str] = None

    project_id: Optional[str] = None

    @field_validator("email_address")
    @classmethod
    def validate_email(cls, v):
        if not EMAIL_RE.match(v.strip()):
            raise ValueError("Invalid email address format")
        return v.strip().lower()

    @field_validator("mobile_number")
    @classmethod
    def strip_mobile(cls, v):
        return v.strip()


class ApplicationUpdate(BaseModel):
    """PUT : champs d'identité / antécédents. Le statut passe par PATCH."""
    model_config = ConfigDict(extra="forbid")

    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    email_address: Optional[str] = None
    mobile_number: Optional[str] = None
    address: Optional[str] = None
    passed_life_insurance_exam: Optional[bool] = None
    passed_life_insurance_exam_rating: Optional[str] = None
    passed_life_insurance_exam_date_of_exam: Optional[str] = None
    passed_life_insurance_exam_venue_of_exam: Optional[str] = None
    has_life_insurance_company: Optional[bool] = None
    has_life_insurance_company_name: Optional[str] = None
    has_non_life_insurance_company: Optional[bool] = None
    has_non_life_insurance_company_name: Optional[str] = None
    has_variable_insurance_company: Optional[bool] = None
    has_variable_insurance_company_name: Optional[str] = None
    related_to_employee: Optional[bool] = None
    related_to_employee_name: Optional[str] = None
    related_to_employee_relationship: Optional[str] = None
    project_id: Optional[str] = None

    updated_by: Optional[str] = None

    @field_validator("email_address")
    @classmethod
    def validate_email(cls, v):
        if v is not None and not EMAIL_RE.match(v.strip()):
            raise ValueError("Invalid email address format")
        return v.strip().lower() if v else v


class ApplicationPatch(BaseModel):
    """
    PATCH d'une application.
    `status` est un str libre ici : le vocabulaire est contrôlé par le service
    pour renvoyer "Invalid status value" plutôt qu'une erreur de schéma.
    """
    type: Literal["document", "application"]
    status: Optional[str] = None
    remarks: Optional[str] = None
    project_id: Optional[str] = None
    updated_by: Optional[str] = None


class DocumentRegister(BaseModel):
    """Métadonnées d'un fichier déjà déposé sur le stockage"""
    model_config = ConfigDict(extra="forbid")

    application_id: str
    document_type: str = Field(min_length=1)
    document_format: str
    document_name: str = Field(min_length=1)
    s3_key: str = Field(min_length=1)
    presigned_url: str = ""

    @field_validator("document_format")
    @classmethod
    def validate_format(cls, v):
        v = v.lower()
        if v not in VALID_DOCUMENT_FORMATS:
            raise ValueError("Invalid document format. Allowed formats are: pdf, png, jpg")
        return v

    @field_validator("s3_key")
    @classmethod
    def validate_extension(cls, v, info):
        fmt = (info.data.get("document_format") or "").lower()
        ext = v.rsplit(".", 1)[-1].lower() if "." in v else ""
        if fmt and ext != fmt:
            raise ValueError(f"File extension ({ext}) does not match specified format ({fmt})")
        return v


class DocumentStatusUpdate(BaseModel):
    document_id: str
    document_status: DocumentStatus
    remarks: Optional[str] = None


class BatchDocumentStatusUpdate(BaseModel):
    application_id: str = Field(min_length=1)
    documents: List[DocumentStatusUpdate] = Field(min_length=1)
    project_id: Optional[str] = None
    update_application_status: bool = False
    updated_by: Optional[str] = None


class QcDiscrepancyEntry(BaseModel):
    document_type: str
    document_format: str
    document_name: str
    remarks: str
    created_at: str
