"""
Security Events
===============
Severity-aware recording of security events on top of the audit chain:
alerting, suspicious source tracking, resolution and metrics.
"""

from collections import Counter
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import structlog

from ..errors import AuditWriteFailed
from ..metrics import SECURITY_ALERTS, SUSPICIOUS_IP_BLOCKS
from .event_types import ALERT_SEVERITIES, AuditAction, Severity
from .log import AuditLog, is_security_event
from .models import AuditLogEntry, DateRange, SecurityMetrics, SuspiciousIP

logger = structlog.get_logger(__name__)

AlertHandler = Callable[[AuditLogEntry], Awaitable[None]]

RECENT_EVENTS_KEPT = 100


class SecurityEventService:
    """
    Records security events through an AuditLog.

    High and critical events raise an alert: a Prometheus counter, a
    structlog warning, the optional ``alert_handler`` and a low severity
    SECURITY_ALERT_SENT entry on the chain. A source address that keeps
    producing high severity events past ``block_threshold`` is escalated
    once to IP_BLOCKED_AUTOMATICALLY.
    """

    def __init__(
        self,
        audit_log: AuditLog,
        alert_handler: Optional[AlertHandler] = None,
        block_threshold: int = 50,
    ):
        self.audit_log = audit_log
        self.alert_handler = alert_handler
        self.block_threshold = block_threshold
        self._suspicious: Dict[str, SuspiciousIP] = {}

    async def record(
        self,
        action,
        severity,
        source_ip: str,
        user_agent: str = "unknown",
        request_path: str = "",
        method: str = "",
        actor_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditLogEntry:
        """
        Append a security event at ``severity``.

        Raises:
            AuditWriteFailed: The event itself could not be written
        """
        entry = await self.audit_log.append(
            action,
            source_ip=source_ip,
            user_agent=user_agent,
            request_path=request_path,
            method=method,
            actor_id=actor_id,
            details=details,
            severity=Severity.parse(severity),
        )

        if entry.severity in ALERT_SEVERITIES:
            await self._alert(entry)

        if entry.source_ip != "unknown":
            await self._track(entry)

        return entry

    async def _alert(self, entry: AuditLogEntry) -> None:
        SECURITY_ALERTS.labels(action=entry.action, severity=entry.severity).inc()
        logger.warning(
            "security_alert",
            entry_id=entry.id,
            action=entry.action,
            severity=entry.severity,
            source_ip=entry.source_ip,
            actor_id=entry.actor_id,
        )

        if self.alert_handler is not None:
            try:
                await self.alert_handler(entry)
            except Exception:
                logger.exception("security_alert_handler_failed", entry_id=entry.id)

        try:
            await self.audit_log.append(
                AuditAction.SECURITY_ALERT_SENT,
                source_ip="system",
                user_agent="vitalgate",
                request_path=entry.request_path,
                method=entry.method,
                details={"original_entry_id": entry.id, "severity": entry.severity},
                severity=Severity.LOW,
            )
        except AuditWriteFailed as e:
            logger.error("security_alert_record_failed", entry_id=entry.id, error=str(e))

    async def _track(self, entry: AuditLogEntry) -> None:
        tracked = self._suspicious.setdefault(entry.source_ip, SuspiciousIP())
        tracked.count += 1
        tracked.last_seen = entry.timestamp
        tracked.recent_events.append(entry.id)
        del tracked.recent_events[:-RECENT_EVENTS_KEPT]

        if (
            not tracked.blocked
            and tracked.count > self.block_threshold
            and entry.severity == Severity.HIGH.value
        ):
            tracked.blocked = True
            SUSPICIOUS_IP_BLOCKS.inc()
            await self.record(
                AuditAction.IP_BLOCKED_AUTOMATICALLY,
                Severity.CRITICAL,
                source_ip=entry.source_ip,
                user_agent=entry.user_agent,
                request_path=entry.request_path,
                method=entry.method,
                details={"event_count": tracked.count, "trigger_entry_id": entry.id},
            )

    def suspicious_ips(self) -> Dict[str, SuspiciousIP]:
        return dict(self._suspicious)

    def is_blocked(self, source_ip: str) -> bool:
        tracked = self._suspicious.get(source_ip)
        return tracked is not None and tracked.blocked

    # =========================================================================
    # Resolution
    # =========================================================================

    async def resolve(self, entry_id: str, resolved_by: str) -> bool:
        """
        Mark an event resolved by appending SECURITY_EVENT_RESOLVED.

        Returns:
            False if no entry has ``entry_id``; True otherwise, including
            when it was already resolved
        """
        entry = await self.audit_log.repository.get(entry_id)
        if entry is None:
            logger.warning("security_event_not_found", entry_id=entry_id)
            return False

        if entry_id in await self.audit_log.resolutions():
            return True

        await self.audit_log.append(
            AuditAction.SECURITY_EVENT_RESOLVED,
            source_ip="system",
            user_agent="vitalgate",
            request_path=entry.request_path,
            method=entry.method,
            actor_id=resolved_by,
            details={"original_entry_id": entry_id, "resolved_by": resolved_by},
            severity=Severity.LOW,
        )
        logger.info("security_event_resolved", entry_id=entry_id, resolved_by=resolved_by)
        return True

    async def is_resolved(self, entry_id: str) -> bool:
        return entry_id in await self.audit_log.resolutions()

    # =========================================================================
    # Metrics
    # =========================================================================

    async def get_security_metrics(self, date_range: Optional[DateRange] = None) -> SecurityMetrics:
        """Top ten threats, top twenty sources and an hourly histogram."""
        date_range = date_range or DateRange()
        entries = [
            e for e in await self.audit_log.repository.list_entries()
            if is_security_event(e) and date_range.contains(e.timestamp)
        ]
        resolved = await self.audit_log.resolutions()

        threats = Counter(e.action for e in entries)
        per_ip: Dict[str, Tuple[int, Severity]] = {}
        for e in entries:
            count, worst = per_ip.get(e.source_ip, (0, Severity.LOW))
            severity = Severity.parse(e.severity)
            per_ip[e.source_ip] = (count + 1, max(worst, severity, key=lambda s: s.rank))
        hours = Counter(e.timestamp.hour for e in entries)

        return SecurityMetrics(
            total_events=len(entries),
            critical_events=sum(1 for e in entries if e.severity == Severity.CRITICAL.value),
            high_severity_events=sum(1 for e in entries if e.severity == Severity.HIGH.value),
            unresolved_events=sum(1 for e in entries if e.id not in resolved),
            top_threats=sorted(threats.items(), key=lambda item: (-item[1], item[0]))[:10],
            ip_addresses=sorted(
                ((ip, count, worst.value) for ip, (count, worst) in per_ip.items()),
                key=lambda item: (-item[1], item[0]),
            )[:20],
            time_distribution=sorted(hours.items()),
        )
