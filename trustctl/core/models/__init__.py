"""
Domain models for trustctl.

All models are re-exported here for convenient access:

    from trustctl.core.models import OsProfile, ReconciliationConfig, Receipt
"""

from trustctl.core.models.action import Action, Receipt
from trustctl.core.models.config import DesiredCertificate, ReconciliationConfig
from trustctl.core.models.profile import OsProfile
from trustctl.core.models.result import CollaboratorFailure, ReconciliationResult

__all__ = [
    "Action",
    "CollaboratorFailure",
    "DesiredCertificate",
    "OsProfile",
    "Receipt",
    "ReconciliationConfig",
    "ReconciliationResult",
]
