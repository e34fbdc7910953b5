"""
Audit Models
============
Data models for audit log entries, queries and statistics.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple


def as_utc(timestamp: datetime) -> datetime:
    """Aware UTC copy of ``timestamp``; naive values are taken as UTC."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


@dataclass(frozen=True)
class AuditLogEntry:
    """An append-only audit log entry with hash chain support."""
    id: str
    timestamp: datetime
    action: str
    actor_id: Optional[str]
    source_ip: str
    user_agent: str
    request_path: str
    method: str
    details: Dict[str, Any]
    integrity_hash: str
    previous_hash: str
    severity: str = "low"
    sequence: int = 0  # Assigned by the repository on persist

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        d = asdict(self)
        d["timestamp"] = self.timestamp.isoformat()
        return d


@dataclass(frozen=True)
class ChainAnchor:
    """Chain-root marker recorded when retention pruning removes history."""
    anchor_hash: str
    created_at: datetime
    removed_count: int
    first_surviving_id: Optional[str] = None


@dataclass(frozen=True)
class DateRange:
    """Inclusive timestamp range; open-ended on a missing side."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def contains(self, timestamp: datetime) -> bool:
        timestamp = as_utc(timestamp)
        if self.start is not None and timestamp < as_utc(self.start):
            return False
        if self.end is not None and timestamp > as_utc(self.end):
            return False
        return True


@dataclass
class AuditQuery:
    """Filter for audit log reads."""
    actor_id: Optional[str] = None
    action: Optional[str] = None
    date_range: Optional[DateRange] = None
    limit: int = 100
    offset: int = 0

    def matches(self, entry: AuditLogEntry) -> bool:
        if self.actor_id is not None and entry.actor_id != self.actor_id:
            return False
        if self.action is not None and entry.action != self.action:
            return False
        if self.date_range is not None and not self.date_range.contains(entry.timestamp):
            return False
        return True


@dataclass
class AuditStatistics:
    """Aggregated counts over a filtered set of entries."""
    total_logs: int = 0
    security_event_count: int = 0
    data_access_count: int = 0
    unique_actors: int = 0
    top_actions: List[Tuple[str, int]] = field(default_factory=list)
    severity_counts: Dict[str, int] = field(default_factory=dict)
    unresolved_security_events: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalLogs": self.total_logs,
            "securityEvents": self.security_event_count,
            "dataAccess": self.data_access_count,
            "uniqueUsers": self.unique_actors,
            "topActions": [
                {"action": action, "count": count}
                for action, count in self.top_actions
            ],
            "severityCounts": dict(self.severity_counts),
            "criticalEvents": self.severity_counts.get("critical", 0),
            "highSeverityEvents": self.severity_counts.get("high", 0),
            "unresolvedEvents": self.unresolved_security_events,
        }


@dataclass(frozen=True)
class Resolution:
    """Operator sign-off on a security event, derived from the chain."""
    entry_id: str
    resolved_by: str
    resolved_at: datetime


@dataclass
class SuspiciousIP:
    """Running tally of security events from one source address."""
    count: int = 0
    last_seen: Optional[datetime] = None
    recent_events: List[str] = field(default_factory=list)
    blocked: bool = False


@dataclass
class SecurityMetrics:
    """Security-event view over a date range."""
    total_events: int = 0
    critical_events: int = 0
    high_severity_events: int = 0
    unresolved_events: int = 0
    top_threats: List[Tuple[str, int]] = field(default_factory=list)
    ip_addresses: List[Tuple[str, int, str]] = field(default_factory=list)  # (ip, count, max severity)
    time_distribution: List[Tuple[int, int]] = field(default_factory=list)  # (hour, count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalEvents": self.total_events,
            "criticalEvents": self.critical_events,
            "highSeverityEvents": self.high_severity_events,
            "unresolvedEvents": self.unresolved_events,
            "topThreats": [{"type": t, "count": c} for t, c in self.top_threats],
            "ipAddresses": [
                {"ip": ip, "eventCount": count, "severity": severity}
                for ip, count, severity in self.ip_addresses
            ],
            "timeDistribution": [{"hour": h, "count": c} for h, c in self.time_distribution],
        }
