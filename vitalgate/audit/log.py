"""
Audit Log
=========
Tamper-evident audit trail: serialized appends, integrity checks, queries,
statistics, retention pruning and export.
"""

import asyncio
import json
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

import structlog

from ..config import AuditConfig
from ..errors import AuditWriteFailed, ChainConflict, IntegrityMismatch, StoreUnavailable
from ..metrics import AUDIT_APPENDS, AUDIT_INTEGRITY_FAILURES
from ..retry import RetryExhausted, RetryPolicy, retry_with_backoff
from .event_types import (
    ALERT_SEVERITIES,
    DATA_ACCESS_ACTIONS,
    SECURITY_ACTIONS,
    AuditAction,
    Severity,
    default_severity,
    normalize_action,
)
from .export import serialize
from .hashing import canonical_payload, compute_entry_hash, hash_entry, verify_chain_integrity
from .models import (
    AuditLogEntry,
    AuditQuery,
    AuditStatistics,
    DateRange,
    Resolution,
    as_utc,
)
from .repository import AuditRepository, InMemoryAuditRepository

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_security_event(entry: AuditLogEntry) -> bool:
    """Security actions, plus anything recorded at high or critical severity."""
    return entry.action in SECURITY_ACTIONS or entry.severity in ALERT_SEVERITIES


class AuditLog:
    """
    High-level audit log over a hash-chained repository.

    Appends are serialized per log by an asyncio lock and guarded by a
    compare-and-swap on the repository head, so writers in other processes
    sharing the repository surface as ChainConflict and are retried.
    """

    def __init__(
        self,
        repository: Optional[AuditRepository] = None,
        config: Optional[AuditConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository or InMemoryAuditRepository()
        self.config = config or AuditConfig()
        self._clock = clock or _utcnow
        self._timeout = self.config.timeout_ms / 1000
        self._lock = asyncio.Lock()
        self._append_policy = RetryPolicy(
            max_attempts=self.config.append_max_attempts,
            base_delay=self.config.append_base_delay,
            max_delay=self.config.append_max_delay,
            retry_on=frozenset({ChainConflict, StoreUnavailable}),
        )

    async def _call(self, operation: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(operation, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise StoreUnavailable("Audit store timed out", e) from e

    # =========================================================================
    # Append
    # =========================================================================

    async def append(
        self,
        action,
        source_ip: str,
        user_agent: str,
        request_path: str,
        method: str,
        actor_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
        severity=None,
    ) -> AuditLogEntry:
        """
        Append an entry to the chain.

        Args:
            action: AuditAction or action name
            source_ip: Client IP address
            user_agent: Client user agent
            request_path: Request path
            method: HTTP method
            actor_id: Authenticated subject, if any
            details: Additional structured data
            timestamp: Caller clock; defaults to now. Naive values are
                taken as UTC.
            severity: Severity or name; defaults per action

        Returns:
            The persisted AuditLogEntry

        Raises:
            AuditWriteFailed: Chain conflicts or store failures persisted
                through every retry
        """
        action_name = normalize_action(action)
        fields = {
            "id": str(uuid.uuid4()),
            "action": action_name,
            "actor_id": actor_id,
            "source_ip": source_ip or "unknown",
            "user_agent": user_agent or "unknown",
            "request_path": request_path,
            "method": method.upper(),
            "details": details or {},
            "timestamp": as_utc(timestamp or self._clock()),
            "severity": (
                Severity.parse(severity) if severity is not None
                else default_severity(action_name)
            ).value,
        }
        attempted = False

        async def write_entry() -> AuditLogEntry:
            nonlocal attempted
            if attempted:
                # An earlier attempt may have committed before its reply timed out
                stored = await self._call(self.repository.get(fields["id"]))
                if stored is not None:
                    return stored
            attempted = True
            return await self._append_once(fields)

        async with self._lock:
            try:
                entry = await retry_with_backoff(write_entry, policy=self._append_policy)
            except RetryExhausted as e:
                AUDIT_APPENDS.labels(outcome="failed").inc()
                logger.error(
                    "audit_append_failed",
                    action=action_name,
                    actor_id=actor_id,
                    timestamp=fields["timestamp"].isoformat(),
                    attempts=e.attempts,
                    error=str(e.last_exception),
                )
                raise AuditWriteFailed(
                    f"Audit entry for {action_name} could not be written",
                    e.last_exception,
                ) from e

        AUDIT_APPENDS.labels(outcome="success").inc()
        logger.info(
            "audit_entry_appended",
            entry_id=entry.id,
            action=entry.action,
            severity=entry.severity,
            sequence=entry.sequence,
        )
        return entry

    async def _append_once(self, fields: Dict[str, Any]) -> AuditLogEntry:
        previous_hash = await self._call(self.repository.head())

        integrity_hash = compute_entry_hash(
            previous_hash,
            canonical_payload(
                fields["id"],
                fields["timestamp"],
                fields["action"],
                fields["actor_id"],
                fields["source_ip"],
                fields["user_agent"],
                fields["request_path"],
                fields["method"],
                fields["details"],
                fields["severity"],
            ),
        )

        entry = AuditLogEntry(
            integrity_hash=integrity_hash,
            previous_hash=previous_hash,
            **fields,
        )

        try:
            return await self._call(self.repository.append_if_head(previous_hash, entry))
        except ChainConflict:
            AUDIT_APPENDS.labels(outcome="conflict").inc()
            raise

    # =========================================================================
    # Integrity
    # =========================================================================

    async def _expected_previous_hash(self, entry: AuditLogEntry) -> str:
        previous = await self.repository.get_previous(entry)
        if previous is not None:
            return previous.integrity_hash
        return await self.repository.root_hash()

    async def verify_integrity(self, entry_id: str) -> bool:
        """
        Recompute an entry's hash from its stored fields and predecessor.

        Returns:
            False on any mismatch or unknown id
        """
        entry = await self.repository.get(entry_id)
        if entry is None:
            logger.warning("audit_entry_not_found", entry_id=entry_id)
            return False

        expected_previous = await self._expected_previous_hash(entry)
        expected_hash = hash_entry(entry, expected_previous)

        if entry.previous_hash != expected_previous or entry.integrity_hash != expected_hash:
            AUDIT_INTEGRITY_FAILURES.inc()
            logger.error(
                "audit_integrity_mismatch",
                entry_id=entry_id,
                sequence=entry.sequence,
                expected_hash=expected_hash[:16],
                actual_hash=entry.integrity_hash[:16],
            )
            return False

        return True

    async def assert_integrity(self, entry_id: str) -> None:
        """
        Raises:
            IntegrityMismatch: Entry is missing or fails verification
        """
        if not await self.verify_integrity(entry_id):
            raise IntegrityMismatch(entry_id)

    async def verify_chain(self) -> Tuple[bool, Optional[int]]:
        """Verify every stored entry in order against the current chain root."""
        entries = await self.repository.list_entries()
        result = verify_chain_integrity(entries, await self.repository.root_hash())
        if not result[0]:
            AUDIT_INTEGRITY_FAILURES.inc()
        return result

    # =========================================================================
    # Queries
    # =========================================================================

    async def _filtered(self, predicate: Callable[[AuditLogEntry], bool]) -> List[AuditLogEntry]:
        entries = await self.repository.list_entries()
        # Newest first, by append order
        return [entry for entry in reversed(entries) if predicate(entry)]

    async def find_many(self, query: Optional[AuditQuery] = None) -> List[AuditLogEntry]:
        """Return matching entries, newest first, after offset/limit."""
        query = query or AuditQuery()
        matched = await self._filtered(query.matches)
        return matched[query.offset:query.offset + query.limit]

    async def find_by_actor(self, actor_id: str, limit: int = 50) -> List[AuditLogEntry]:
        return await self.find_many(AuditQuery(actor_id=actor_id, limit=limit))

    async def find_by_action(self, action, limit: int = 50) -> List[AuditLogEntry]:
        return await self.find_many(AuditQuery(action=normalize_action(action), limit=limit))

    async def find_security_events(
        self,
        date_range: Optional[DateRange] = None,
        limit: int = 200,
    ) -> List[AuditLogEntry]:
        date_range = date_range or DateRange()
        matched = await self._filtered(
            lambda e: e.action in SECURITY_ACTIONS and date_range.contains(e.timestamp)
        )
        return matched[:limit]

    async def find_data_access_logs(
        self,
        actor_id: Optional[str] = None,
        data_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditLogEntry]:
        """Data access entries, optionally for one actor and mentioning ``data_type``."""
        def predicate(entry: AuditLogEntry) -> bool:
            if entry.action not in DATA_ACCESS_ACTIONS:
                return False
            if actor_id is not None and entry.actor_id != actor_id:
                return False
            if data_type is not None and data_type not in json.dumps(entry.details, default=str):
                return False
            return True

        matched = await self._filtered(predicate)
        return matched[:limit]

    async def get_statistics(self, date_range: Optional[DateRange] = None) -> AuditStatistics:
        """Aggregate counts; ``top_actions`` is the top ten by count, then name."""
        date_range = date_range or DateRange()
        entries = await self._filtered(lambda e: date_range.contains(e.timestamp))

        action_counts = Counter(entry.action for entry in entries)
        top_actions = sorted(action_counts.items(), key=lambda item: (-item[1], item[0]))
        resolved = await self.resolutions()

        return AuditStatistics(
            total_logs=len(entries),
            security_event_count=sum(1 for e in entries if e.action in SECURITY_ACTIONS),
            data_access_count=sum(1 for e in entries if e.action in DATA_ACCESS_ACTIONS),
            unique_actors=len({e.actor_id for e in entries if e.actor_id is not None}),
            top_actions=top_actions[:10],
            severity_counts=dict(Counter(entry.severity for entry in entries)),
            unresolved_security_events=sum(
                1 for e in entries if is_security_event(e) and e.id not in resolved
            ),
        )

    async def resolutions(self) -> Dict[str, Resolution]:
        """Resolved entry ids, read back from SECURITY_EVENT_RESOLVED entries."""
        resolved: Dict[str, Resolution] = {}
        for entry in await self.repository.list_entries():
            if entry.action != AuditAction.SECURITY_EVENT_RESOLVED.value:
                continue
            target = entry.details.get("original_entry_id")
            if target and target not in resolved:
                resolved[target] = Resolution(
                    entry_id=target,
                    resolved_by=entry.details.get("resolved_by") or entry.actor_id,
                    resolved_at=entry.timestamp,
                )
        return resolved

    # =========================================================================
    # Retention and export
    # =========================================================================

    async def cleanup(self, retention_days: Optional[int] = None) -> int:
        """
        Prune the oldest entries past the retention window.

        Args:
            retention_days: Days to keep; defaults to the configured retention

        Returns:
            Number of entries removed
        """
        if retention_days is None:
            retention_days = self.config.retention_days
        if retention_days < 0:
            raise ValueError("retention_days must not be negative")

        cutoff = as_utc(self._clock()) - timedelta(days=retention_days)
        removed = await self.repository.prune_oldest(cutoff)

        logger.info(
            "audit_cleanup_completed",
            retention_days=retention_days,
            cutoff=cutoff.isoformat(),
            removed=removed,
        )
        return removed

    async def export(self, date_range: Optional[DateRange] = None, fmt="json") -> str:
        """Serialize entries in ``date_range`` as JSON or CSV."""
        entries = await self.find_many(
            AuditQuery(date_range=date_range, limit=self.config.export_limit)
        )
        return serialize(entries, fmt)
