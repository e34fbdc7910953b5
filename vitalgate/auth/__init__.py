"""
Token Lifecycle Module
======================
Issue, verify, inspect and refresh signed bearer tokens.
"""

from .models import TokenClaims
from .tokens import TokenManager

__all__ = [
    "TokenClaims",
    "TokenManager",
]
