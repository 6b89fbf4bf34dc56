"""Database plumbing: declarative base, engine/session management, audit-trail guards."""

from security_kernel.db.base import Base, UUIDString
from security_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from security_kernel.db.immutability import (
    audit_write_scope,
    register_immutability_listeners,
    unregister_immutability_listeners,
)

__all__ = [
    "Base",
    "UUIDString",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "drop_tables",
    "reset_engine",
    "audit_write_scope",
    "register_immutability_listeners",
    "unregister_immutability_listeners",
]
