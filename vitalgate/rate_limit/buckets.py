"""
Bucket Registry
===============
Static bucket names, path classification and tier limits.
"""

from typing import Dict, Mapping, Tuple

from .models import Tier

GENERAL = "general"
AUTH = "auth"
SENSITIVE_DATA = "sensitive_data"
FILE_UPLOAD = "file_upload"
HEALTH_DATA = "health_data"
AI_ANALYSIS = "ai_analysis"
DYNAMIC = "dynamic"

# Ordered: first matching prefix wins
PATH_RULES: Tuple[Tuple[str, str], ...] = (
    ("/api/auth", AUTH),
    ("/api/documents/upload", FILE_UPLOAD),
    ("/api/upload", FILE_UPLOAD),
    ("/api/ai", AI_ANALYSIS),
    ("/api/health", HEALTH_DATA),
    ("/api/medical", SENSITIVE_DATA),
    ("/api/medications", SENSITIVE_DATA),
    ("/api/genomics", SENSITIVE_DATA),
    ("/api/family-history", SENSITIVE_DATA),
    ("/api/documents", SENSITIVE_DATA),
)


def classify_path(path: str) -> str:
    """
    Map a request path to the static bucket that governs it.

    Args:
        path: Request path, e.g. "/api/auth/login"

    Returns:
        Bucket name; "general" when no rule matches
    """
    normalized = path.rstrip("/") or "/"
    for prefix, bucket in PATH_RULES:
        if normalized == prefix or normalized.startswith(prefix + "/"):
            return bucket
    return GENERAL


def tier_limit(tier, tier_limits: Mapping[str, int]) -> int:
    """Max requests for ``tier``; unknown tiers get the default tier's limit."""
    parsed = Tier.parse(tier)
    limit = tier_limits.get(parsed.value)
    if limit is None:
        limit = tier_limits[Tier.DEFAULT.value]
    return limit


def describe_tiers(tier_limits: Mapping[str, int]) -> Dict[str, int]:
    """Tier limits keyed by every known tier, for admin/status endpoints."""
    return {tier.value: tier_limit(tier, tier_limits) for tier in Tier}
