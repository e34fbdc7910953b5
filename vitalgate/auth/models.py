"""
Token Models
============
Claims carried by a signed session token.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of a session token. Immutable once signed."""
    subject_id: str
    email: str
    issued_at: datetime
    expires_at: datetime
    issuer: str
    audience: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject_id": self.subject_id,
            "email": self.email,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "issuer": self.issuer,
            "audience": self.audience,
        }
