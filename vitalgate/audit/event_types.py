"""
Audit Actions
=============
Standard audit actions recorded by the governance core and its callers.
"""

from enum import Enum
from typing import Dict, FrozenSet


class AuditAction(str, Enum):
    """Standard audit actions."""
    # Authentication
    LOGIN = "LOGIN"
    LOGIN_FAILED = "LOGIN_FAILED"
    LOGOUT = "LOGOUT"
    REGISTER = "REGISTER"
    TOKEN_REFRESH = "TOKEN_REFRESH"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    SESSION_TIMEOUT = "SESSION_TIMEOUT"

    # Authorization
    PERMISSION_GRANTED = "PERMISSION_GRANTED"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNAUTHORIZED_ACCESS_ATTEMPT = "UNAUTHORIZED_ACCESS_ATTEMPT"
    DATA_OWNERSHIP_VIOLATION = "DATA_OWNERSHIP_VIOLATION"
    IP_WHITELIST_VIOLATION = "IP_WHITELIST_VIOLATION"

    # Traffic
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    MALICIOUS_INPUT_DETECTED = "MALICIOUS_INPUT_DETECTED"
    IP_BLOCKED_AUTOMATICALLY = "IP_BLOCKED_AUTOMATICALLY"

    # Security event handling
    SECURITY_ALERT_SENT = "SECURITY_ALERT_SENT"
    SECURITY_EVENT_RESOLVED = "SECURITY_EVENT_RESOLVED"

    # Data access
    SENSITIVE_DATA_ACCESS = "SENSITIVE_DATA_ACCESS"
    DATA_READ = "DATA_READ"
    DATA_WRITE = "DATA_WRITE"
    DATA_DELETE = "DATA_DELETE"


SECURITY_ACTIONS: FrozenSet[str] = frozenset({
    AuditAction.LOGIN_FAILED.value,
    AuditAction.PERMISSION_DENIED.value,
    AuditAction.UNAUTHORIZED_ACCESS_ATTEMPT.value,
    AuditAction.DATA_OWNERSHIP_VIOLATION.value,
    AuditAction.RATE_LIMIT_EXCEEDED.value,
    AuditAction.IP_WHITELIST_VIOLATION.value,
    AuditAction.SESSION_TIMEOUT.value,
    AuditAction.MALICIOUS_INPUT_DETECTED.value,
    AuditAction.IP_BLOCKED_AUTOMATICALLY.value,
})

DATA_ACCESS_ACTIONS: FrozenSet[str] = frozenset({
    AuditAction.SENSITIVE_DATA_ACCESS.value,
    AuditAction.DATA_READ.value,
    AuditAction.DATA_WRITE.value,
    AuditAction.DATA_DELETE.value,
})


def normalize_action(action) -> str:
    return action.value if isinstance(action, AuditAction) else str(action)


class Severity(str, Enum):
    """Security event severity, lowest first."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_ORDER.index(self)

    @classmethod
    def parse(cls, value) -> "Severity":
        if isinstance(value, Severity):
            return value
        return cls(str(value).lower())


_SEVERITY_ORDER = (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)

# Severities that page someone as soon as they are recorded
ALERT_SEVERITIES: FrozenSet[str] = frozenset({Severity.HIGH.value, Severity.CRITICAL.value})

DEFAULT_SEVERITY: Dict[str, Severity] = {
    AuditAction.LOGIN_FAILED.value: Severity.MEDIUM,
    AuditAction.AUTHENTICATION_FAILED.value: Severity.MEDIUM,
    AuditAction.TOKEN_EXPIRED.value: Severity.LOW,
    AuditAction.PERMISSION_DENIED.value: Severity.MEDIUM,
    AuditAction.RATE_LIMIT_EXCEEDED.value: Severity.MEDIUM,
    AuditAction.UNAUTHORIZED_ACCESS_ATTEMPT.value: Severity.HIGH,
    AuditAction.DATA_OWNERSHIP_VIOLATION.value: Severity.HIGH,
    AuditAction.IP_WHITELIST_VIOLATION.value: Severity.HIGH,
    AuditAction.MALICIOUS_INPUT_DETECTED.value: Severity.HIGH,
    AuditAction.IP_BLOCKED_AUTOMATICALLY.value: Severity.CRITICAL,
    AuditAction.DATA_DELETE.value: Severity.MEDIUM,
}


def default_severity(action: str) -> Severity:
    """Severity recorded when the caller does not give one."""
    return DEFAULT_SEVERITY.get(action, Severity.LOW)
