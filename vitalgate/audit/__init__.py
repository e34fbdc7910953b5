"""
Audit Logging Module
====================
Append-only, tamper-evident audit trail with hash chaining.
"""

from .event_types import (
    AuditAction,
    DATA_ACCESS_ACTIONS,
    SECURITY_ACTIONS,
    Severity,
    default_severity,
)
from .models import (
    AuditLogEntry,
    AuditQuery,
    AuditStatistics,
    ChainAnchor,
    DateRange,
    Resolution,
    SecurityMetrics,
    SuspiciousIP,
)
from .hashing import GENESIS_HASH, compute_entry_hash, hash_entry, verify_chain_integrity
from .repository import AuditRepository, InMemoryAuditRepository
from .export import ExportFormat
from .log import AuditLog
from .security import SecurityEventService

__all__ = [
    # Actions
    "AuditAction",
    "DATA_ACCESS_ACTIONS",
    "SECURITY_ACTIONS",
    "Severity",
    "default_severity",
    # Models
    "AuditLogEntry",
    "AuditQuery",
    "AuditStatistics",
    "ChainAnchor",
    "DateRange",
    "Resolution",
    "SecurityMetrics",
    "SuspiciousIP",
    # Hashing
    "GENESIS_HASH",
    "compute_entry_hash",
    "hash_entry",
    "verify_chain_integrity",
    # Storage
    "AuditRepository",
    "InMemoryAuditRepository",
    # Export
    "ExportFormat",
    # Log
    "AuditLog",
    "SecurityEventService",
]
