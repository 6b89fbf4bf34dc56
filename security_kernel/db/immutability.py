"""
ORM-level protection for the audit trail.

===============================================================================
WHAT IS ENFORCED
===============================================================================

Entity          | Rule                                    | Raised
----------------|-----------------------------------------|------------------------------
AuditLogRecord  | never updated                           | ImmutabilityViolationError
AuditLogRecord  | never deleted                           | ImmutabilityViolationError
AuditLogRecord  | inserted only inside audit_write_scope  | DirectAuditWriteError

SQLAlchemy fires mapper events before the SQL reaches the database:

    session.flush()
         |
         v
    [before_insert] --> _check_audit_insert_origin() --> DirectAuditWriteError
    [before_update] --> _check_audit_log_update() ----> ImmutabilityViolationError
    [before_delete] --> _check_audit_log_delete() ----> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
DESIGN DECISIONS
===============================================================================

1. WHY GUARD INSERTS?
   Masking happens in AuditLogService.create_audit_log().  A record added to
   a session anywhere else would skip it and could persist a plaintext
   secret.  The service opens ``audit_write_scope()`` around its flush; the
   insert listener rejects any AuditLogRecord flushed outside that scope.

2. WHY A CONTEXTVAR?
   The scope must follow the current thread or task and nothing else.  A
   concurrent request that flushes a hand-built record while another
   request is inside the service still fails.

3. WHY INLINE IMPORTS?
   Models import from db, db imports from models.

===============================================================================
USAGE
===============================================================================

    from security_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # idempotent; create_tables() and
                                       # AuditLogService call it too

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

from sqlalchemy import event

from security_kernel.exceptions import DirectAuditWriteError, ImmutabilityViolationError
from security_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_audit_write_authorized: ContextVar[bool] = ContextVar(
    "audit_write_authorized", default=False
)


@contextmanager
def audit_write_scope() -> Iterator[None]:
    """Mark the current context as the audit service's masked write path."""
    token = _audit_write_authorized.set(True)
    try:
        yield
    finally:
        _audit_write_authorized.reset(token)


def in_audit_write_scope() -> bool:
    return _audit_write_authorized.get()


def _check_audit_insert_origin(mapper, connection, target):
    """Reject AuditLogRecord inserts that bypassed the masking path."""
    if _audit_write_authorized.get():
        return

    action = str(getattr(target.action, "value", target.action))
    logger.error(
        "direct_audit_write_blocked",
        extra={
            "entity_type": "AuditLogRecord",
            "operation": "INSERT",
            "action": action,
        },
    )
    raise DirectAuditWriteError(action=action)


def _check_audit_log_update(mapper, connection, target):
    """Audit records are immutable once written."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditLogRecord",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditLogRecord",
        entity_id=str(target.id),
        reason="Audit records are immutable and cannot be modified",
    )


def _check_audit_log_delete(mapper, connection, target):
    """Audit records are never deleted by the kernel."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditLogRecord",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditLogRecord",
        entity_id=str(target.id),
        reason="Audit records cannot be deleted",
    )


_LISTENERS = (
    ("before_insert", _check_audit_insert_origin),
    ("before_update", _check_audit_log_update),
    ("before_delete", _check_audit_log_delete),
)


def register_immutability_listeners():
    """
    Register the audit-trail listeners.  Idempotent.

    Called by create_tables() and by AuditLogService on construction, so
    every process that owns the audit table or writes to it is guarded.
    """
    from security_kernel.models.audit_log import AuditLogRecord

    added = 0
    for event_name, listener_fn in _LISTENERS:
        if not event.contains(AuditLogRecord, event_name, listener_fn):
            event.listen(AuditLogRecord, event_name, listener_fn)
            added += 1

    if added:
        logger.info("immutability_listeners_registered")


def unregister_immutability_listeners():
    """
    Remove the audit-trail listeners.

    WARNING: Only use this in tests that must bypass the guards on purpose.
    """
    from security_kernel.models.audit_log import AuditLogRecord

    for event_name, listener_fn in _LISTENERS:
        if event.contains(AuditLogRecord, event_name, listener_fn):
            event.remove(AuditLogRecord, event_name, listener_fn)
