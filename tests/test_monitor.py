"""
Usage Monitor Tests
===================
Tests for quota usage warnings.
"""

WARNINGS_METRIC = "vitalgate_usage_warnings_total"


def _warnings():
    from vitalgate.metrics import GOVERNANCE_REGISTRY

    return GOVERNANCE_REGISTRY.get_sample_value(WARNINGS_METRIC) or 0.0


class TestUsageMonitor:
    """Tests for UsageMonitor."""

    def test_below_threshold(self):
        """Usage under the threshold does not warn."""
        from vitalgate.monitor import UsageMonitor

        before = _warnings()
        usage = UsageMonitor().observe(100, 21)

        assert usage == 79.0
        assert _warnings() == before

    def test_at_threshold_warns(self):
        """Usage at the threshold counts as a warning."""
        from vitalgate.monitor import UsageMonitor

        before = _warnings()
        usage = UsageMonitor().observe(100, 20, identity="1.2.3.4", path="/api/users")

        assert usage == 80.0
        assert _warnings() == before + 1

    def test_zero_limit(self):
        from vitalgate.monitor import UsageMonitor

        assert UsageMonitor().observe(0, 0) is None

    def test_headers(self):
        """Responses without quota headers are ignored."""
        from vitalgate.monitor import UsageMonitor

        monitor = UsageMonitor(threshold=50)

        assert monitor.observe_headers({}) is None
        assert monitor.observe_headers({
            "X-RateLimit-Limit": "10",
            "X-RateLimit-Remaining": "0",
        }) == 100.0
