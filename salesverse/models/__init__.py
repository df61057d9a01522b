"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  SALESVERSE CRM - Models Package                                             ║
║                                                                              ║
║  Exports tous les modèles pour import facile                                 ║
║  from salesverse.models import LeadCreate, ApplicationCreate, etc.           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Lead
from .lead import (
    LEAD_PROGRESS_OPTIONS,
    LEAD_DISPOSITION_OPTIONS,
    LEAD_SUB_DISPOSITION_OPTIONS,
    STATUS_FIELDS,
    ACTOR_FIELDS,
    LeadStatusName,
    VALID_LEAD_STATUSES,
    LeadStatusRecord,
    LeadCreate,
    LeadUpdate,
    LeadOwnershipChange,
    LeadFilter,
    AdvancedLeadFilter,
    BulkLeadUpload,
)

# Agent / Projet
from .agent import (
    AgentStatus,
    AgentCreate,
    AgentStatusUpdate,
    AgentSummary,
    ref_id,
    ProjectCreate,
)

# Historique
from .history import ChangeType, HistoryChange

# AOB
from .application import (
    ApplicationStatus,
    VALID_APPLICATION_STATUSES,
    DocumentStatus,
    VALID_DOCUMENT_FORMATS,
    ApplicationCreate,
    ApplicationUpdate,
    ApplicationPatch,
    DocumentRegister,
    DocumentStatusUpdate,
    BatchDocumentStatusUpdate,
    QcDiscrepancyEntry,
)

# Notifications
from .notification import (
    NotificationType,
    NotificationRecipient,
    NotificationCreate,
    MarkAsRead,
)

__all__ = [
    # Lead
    "LEAD_PROGRESS_OPTIONS",
    "LEAD_DISPOSITION_OPTIONS",
    "LEAD_SUB_DISPOSITION_OPTIONS",
    "STATUS_FIELDS",
    "ACTOR_FIELDS",
    "LeadStatusName",
    "VALID_LEAD_STATUSES",
    "LeadStatusRecord",
    "LeadCreate",
    "LeadUpdate",
    "LeadOwnershipChange",
    "LeadFilter",
    "AdvancedLeadFilter",
    "BulkLeadUpload",
    # Agent / Projet
    "AgentStatus",
    "AgentCreate",
    "AgentStatusUpdate",
    "AgentSummary",
    "ref_id",
    "ProjectCreate",
    # Historique
    "ChangeType",
    "HistoryChange",
    # AOB
    "ApplicationStatus",
    "VALID_APPLICATION_STATUSES",
    "DocumentStatus",
    "VALID_DOCUMENT_FORMATS",
    "ApplicationCreate",
    "ApplicationUpdate",
    "ApplicationPatch",
    "DocumentRegister",
    "DocumentStatusUpdate",
    "BatchDocumentStatusUpdate",
    "QcDiscrepancyEntry",
    # Notifications
    "NotificationType",
    "NotificationRecipient",
    "NotificationCreate",
    "MarkAsRead",
]
