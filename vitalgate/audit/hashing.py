"""
Audit Hashing
=============
Hash computation and chain verification for audit logs.
"""

import hashlib
import json
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import structlog

from .models import AuditLogEntry

logger = structlog.get_logger(__name__)

# Seed the first entry of a fresh log chains against
GENESIS_HASH = "0" * 64


def canonical_payload(
    entry_id: str,
    timestamp: datetime,
    action: str,
    actor_id: Optional[str],
    source_ip: str,
    user_agent: str,
    request_path: str,
    method: str,
    details: Dict[str, Any],
    severity: str,
) -> str:
    """Deterministic JSON serialization of an entry without its hash."""
    return json.dumps({
        "id": entry_id,
        "timestamp": timestamp.isoformat(),
        "action": action,
        "actor_id": actor_id,
        "source_ip": source_ip,
        "user_agent": user_agent,
        "request_path": request_path,
        "method": method,
        "details": details,
        "severity": severity,
    }, sort_keys=True, separators=(",", ":"), default=str)


def compute_entry_hash(previous_hash: str, payload: str) -> str:
    """
    Compute the chained hash for an audit entry.

    Each entry's hash depends on the previous entry's hash and the canonical
    serialization of the entry itself, so editing any stored field or
    reordering entries breaks the chain from that point on.

    Args:
        previous_hash: Hash of the previous entry (or the chain root)
        payload: Output of ``canonical_payload``

    Returns:
        SHA-256 hex digest
    """
    return hashlib.sha256((previous_hash + payload).encode()).hexdigest()


def hash_entry(entry: AuditLogEntry, previous_hash: str) -> str:
    """Recompute an entry's hash from its stored fields."""
    return compute_entry_hash(
        previous_hash,
        canonical_payload(
            entry.id,
            entry.timestamp,
            entry.action,
            entry.actor_id,
            entry.source_ip,
            entry.user_agent,
            entry.request_path,
            entry.method,
            entry.details,
            entry.severity,
        ),
    )


def verify_chain_integrity(
    entries: List[AuditLogEntry],
    root_hash: str = GENESIS_HASH,
) -> Tuple[bool, Optional[int]]:
    """
    Verify the integrity of an ordered audit chain.

    Args:
        entries: Entries in append order
        root_hash: Hash the first entry chains against

    Returns:
        Tuple of (is_valid, first_invalid_index)
    """
    expected_previous = root_hash

    for i, entry in enumerate(entries):
        if entry.previous_hash != expected_previous:
            logger.warning(
                "audit_chain_linkage_broken",
                entry_id=entry.id,
                index=i,
            )
            return False, i

        expected_hash = hash_entry(entry, expected_previous)
        if entry.integrity_hash != expected_hash:
            logger.warning(
                "audit_chain_integrity_violation",
                entry_id=entry.id,
                index=i,
                expected_hash=expected_hash[:16],
                actual_hash=entry.integrity_hash[:16],
            )
            return False, i

        expected_previous = entry.integrity_hash

    return True, None
