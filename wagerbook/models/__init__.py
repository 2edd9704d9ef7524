from wagerbook.models.account import Account
from wagerbook.models.outcome_record import OutcomeRecord
from wagerbook.models.audit_log import AuditLog

__all__ = [
    "Account",
    "OutcomeRecord",
    "AuditLog",
]
