"""
Audit Log Tests
===============
Tests for hash chaining, integrity checks, queries, retention and export.
"""

import asyncio
import csv
import dataclasses
import io
import json
from datetime import datetime, timedelta, timezone

import pytest


class SlowHeadRepository:
    """Wraps an in-memory repository so head reads yield to other writers."""

    def __init__(self):
        from vitalgate.audit import InMemoryAuditRepository

        self.inner = InMemoryAuditRepository()

    async def head(self):
        head = await self.inner.head()
        await asyncio.sleep(0.001)
        return head

    def __getattr__(self, name):
        return getattr(self.inner, name)


class ConflictingRepository:
    """Repository whose head always moves before the write lands."""

    def __init__(self):
        from vitalgate.audit import InMemoryAuditRepository

        self.inner = InMemoryAuditRepository()

    async def append_if_head(self, expected_head, entry):
        from vitalgate.errors import ChainConflict

        raise ChainConflict(expected_head, "f" * 64)

    def __getattr__(self, name):
        return getattr(self.inner, name)


class SlowCommitRepository:
    """Repository that commits the write, then answers too late."""

    def __init__(self, delay: float = 0.2):
        from vitalgate.audit import InMemoryAuditRepository

        self.inner = InMemoryAuditRepository()
        self.delay = delay

    async def append_if_head(self, expected_head, entry):
        stored = await self.inner.append_if_head(expected_head, entry)
        await asyncio.sleep(self.delay)
        return stored

    def __getattr__(self, name):
        return getattr(self.inner, name)


@pytest.fixture
def audit_log(wall_clock):
    from vitalgate.audit import AuditLog

    return AuditLog(clock=wall_clock)


async def _append(log, action="DATA_READ", actor_id="user_1", **kwargs):
    return await log.append(
        action,
        source_ip="10.0.0.1",
        user_agent="pytest",
        request_path="/api/medical/records",
        method="get",
        actor_id=actor_id,
        **kwargs,
    )


class TestHashing:
    """Tests for the chain hashing helpers."""

    def test_genesis(self):
        from vitalgate.audit import GENESIS_HASH

        assert GENESIS_HASH == "0" * 64

    def test_hash_depends_on_previous(self):
        """The same payload hashes differently under different predecessors."""
        from vitalgate.audit import compute_entry_hash

        assert compute_entry_hash("a" * 64, "{}") != compute_entry_hash("b" * 64, "{}")
        assert len(compute_entry_hash("a" * 64, "{}")) == 64


class TestAppend:
    """Tests for appending entries."""

    @pytest.mark.asyncio
    async def test_first_entry_chains_to_genesis(self, audit_log):
        from vitalgate.audit import GENESIS_HASH

        entry = await _append(audit_log)

        assert entry.previous_hash == GENESIS_HASH
        assert entry.sequence == 0
        assert entry.method == "GET"
        assert await audit_log.verify_integrity(entry.id) is True

    @pytest.mark.asyncio
    async def test_entries_link(self, audit_log):
        """Each entry's previous hash is its predecessor's hash."""
        first = await _append(audit_log)
        second = await _append(audit_log, details={"record": 7})

        assert second.previous_hash == first.integrity_hash
        assert second.sequence == 1
        assert await audit_log.verify_chain() == (True, None)

    @pytest.mark.asyncio
    async def test_accepts_action_names(self, audit_log):
        """Actions may be given as enum members or plain strings."""
        from vitalgate.audit import AuditAction

        entry = await _append(audit_log, action=AuditAction.LOGIN_FAILED)
        custom = await _append(audit_log, action="EXPORT_REQUESTED")

        assert entry.action == "LOGIN_FAILED"
        assert custom.action == "EXPORT_REQUESTED"

    @pytest.mark.asyncio
    async def test_concurrent_writers_share_chain(self):
        """Writers sharing a repository never fork the chain."""
        from vitalgate.audit import AuditLog
        from vitalgate.config import AuditConfig

        repository = SlowHeadRepository()
        config = AuditConfig(append_max_attempts=50, append_base_delay=0.001, append_max_delay=0.01)
        writers = [AuditLog(repository, config), AuditLog(repository, config)]

        entries = await asyncio.gather(*[
            _append(writers[i % 2], details={"n": i}) for i in range(10)
        ])

        assert len({e.integrity_hash for e in entries}) == 10
        assert len({e.previous_hash for e in entries}) == 10
        assert await writers[0].verify_chain() == (True, None)

    @pytest.mark.asyncio
    async def test_persistent_conflict_fails(self):
        """An append that never wins the head raises AuditWriteFailed."""
        from vitalgate.audit import AuditLog
        from vitalgate.config import AuditConfig
        from vitalgate.errors import AuditWriteFailed, ChainConflict

        log = AuditLog(
            ConflictingRepository(),
            AuditConfig(append_max_attempts=3, append_base_delay=0.001),
        )

        with pytest.raises(AuditWriteFailed) as exc_info:
            await _append(log)

        assert isinstance(exc_info.value.last_exception, ChainConflict)
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_retry_after_timeout_does_not_duplicate(self):
        """A write that committed before its reply timed out is not written twice."""
        from vitalgate.audit import AuditLog
        from vitalgate.config import AuditConfig

        repository = SlowCommitRepository()
        log = AuditLog(repository, AuditConfig(timeout_ms=50, append_base_delay=0.001))

        entry = await _append(log)

        stored = await repository.list_entries()
        assert [e.id for e in stored] == [entry.id]
        assert await log.verify_chain() == (True, None)

    @pytest.mark.asyncio
    async def test_naive_timestamp_stored_as_utc(self, audit_log):
        entry = await _append(audit_log, timestamp=datetime(2020, 1, 1, 12, 0))

        assert entry.timestamp == datetime(2020, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert await audit_log.verify_integrity(entry.id) is True


class TestIntegrity:
    """Tests for tamper detection."""

    @pytest.mark.asyncio
    async def test_tampered_entry_detected(self, audit_log):
        """Editing entry k fails k and leaves its neighbours verifiable."""
        entries = [await _append(audit_log, details={"n": i}) for i in range(5)]

        repository = audit_log.repository
        repository._entries[2] = dataclasses.replace(
            repository._entries[2], details={"n": 99}
        )

        results = [await audit_log.verify_integrity(e.id) for e in entries]

        assert results == [True, True, False, True, True]
        assert await audit_log.verify_chain() == (False, 2)

    @pytest.mark.asyncio
    async def test_unknown_entry(self, audit_log):
        from vitalgate.errors import IntegrityMismatch

        assert await audit_log.verify_integrity("missing") is False
        with pytest.raises(IntegrityMismatch):
            await audit_log.assert_integrity("missing")


class TestQueries:
    """Tests for reads and statistics."""

    @pytest.mark.asyncio
    async def test_find_many_newest_first(self, audit_log, wall_clock):
        from vitalgate.audit import AuditQuery

        for i in range(5):
            await _append(audit_log, details={"n": i})
            wall_clock.advance(minutes=1)

        page = await audit_log.find_many(AuditQuery(limit=2, offset=1))

        assert [e.details["n"] for e in page] == [3, 2]

    @pytest.mark.asyncio
    async def test_filters(self, audit_log, wall_clock):
        """Actor, action and date range filters combine."""
        from vitalgate.audit import DateRange

        start = wall_clock()
        await _append(audit_log, action="LOGIN", actor_id="alice")
        wall_clock.advance(days=1)
        await _append(audit_log, action="DATA_READ", actor_id="alice")
        await _append(audit_log, action="DATA_READ", actor_id="bob")

        assert len(await audit_log.find_by_actor("alice")) == 2
        assert len(await audit_log.find_by_action("DATA_READ")) == 2

        stats = await audit_log.get_statistics(DateRange(start, start + timedelta(hours=1)))
        assert stats.total_logs == 1

    @pytest.mark.asyncio
    async def test_security_and_data_access(self, audit_log):
        from vitalgate.audit import AuditAction

        await _append(audit_log, action=AuditAction.RATE_LIMIT_EXCEEDED)
        await _append(audit_log, action=AuditAction.LOGIN)
        await _append(audit_log, action=AuditAction.DATA_READ, details={"type": "genomics"})
        await _append(audit_log, action=AuditAction.DATA_WRITE, details={"type": "medications"})

        security = await audit_log.find_security_events()
        genomics = await audit_log.find_data_access_logs(data_type="genomics")

        assert [e.action for e in security] == ["RATE_LIMIT_EXCEEDED"]
        assert [e.action for e in genomics] == ["DATA_READ"]

    @pytest.mark.asyncio
    async def test_statistics(self, audit_log):
        """Top actions are ordered by count, then name."""
        for action, actor in [
            ("B", "u1"), ("B", "u2"), ("A", "u1"), ("A", None), ("C", "u3"),
            ("LOGIN_FAILED", "u1"), ("DATA_READ", "u2"),
        ]:
            await _append(audit_log, action=action, actor_id=actor)

        stats = await audit_log.get_statistics()

        assert stats.total_logs == 7
        assert stats.security_event_count == 1
        assert stats.data_access_count == 1
        assert stats.unique_actors == 3
        assert stats.top_actions[:3] == [("A", 2), ("B", 2), ("C", 1)]
        assert stats.to_dict()["topActions"][0] == {"action": "A", "count": 2}


class TestRetention:
    """Tests for cleanup and chain re-anchoring."""

    @pytest.mark.asyncio
    async def test_cleanup_keeps_recent(self, audit_log, wall_clock):
        await _append(audit_log, details={"n": 0})
        wall_clock.advance(days=40)
        survivor = await _append(audit_log, details={"n": 1})

        removed = await audit_log.cleanup(30)

        assert removed == 1
        assert await audit_log.verify_integrity(survivor.id) is True
        assert await audit_log.verify_chain() == (True, None)

    @pytest.mark.asyncio
    async def test_cleanup_everything_then_append(self, audit_log):
        """After a full prune new entries still verify."""
        for i in range(3):
            await _append(audit_log, details={"n": i})

        assert await audit_log.cleanup(0) == 3

        entry = await _append(audit_log, details={"n": 3})

        assert await audit_log.verify_integrity(entry.id) is True
        assert await audit_log.verify_chain() == (True, None)
        anchors = await audit_log.repository.anchors()
        assert anchors[0].removed_count == 3

    @pytest.mark.asyncio
    async def test_cleanup_is_contiguous(self, audit_log, wall_clock):
        """Pruning stops at the first entry newer than the cutoff."""
        old = wall_clock() - timedelta(days=100)

        await _append(audit_log, timestamp=old)
        await _append(audit_log)
        await _append(audit_log, timestamp=old)

        assert await audit_log.cleanup(30) == 1
        assert len(await audit_log.find_many()) == 2

    @pytest.mark.asyncio
    async def test_naive_timestamps_in_range_queries(self, audit_log):
        """Naive entry timestamps and range bounds compare as UTC."""
        from vitalgate.audit import DateRange

        await _append(audit_log, timestamp=datetime(2020, 1, 1))
        await _append(audit_log)
        date_range = DateRange(start=datetime(2019, 12, 31), end=datetime(2020, 1, 2))

        stats = await audit_log.get_statistics(date_range)
        exported = json.loads(await audit_log.export(date_range))

        assert stats.total_logs == 1
        assert len(exported) == 1
        assert await audit_log.cleanup(30) == 1
        assert len(await audit_log.find_many()) == 1

    @pytest.mark.asyncio
    async def test_negative_retention(self, audit_log):
        with pytest.raises(ValueError):
            await audit_log.cleanup(-1)


class TestExport:
    """Tests for JSON and CSV export."""

    @pytest.mark.asyncio
    async def test_json(self, audit_log):
        entry = await _append(audit_log, details={"record": 1})

        exported = json.loads(await audit_log.export())

        assert exported[0]["id"] == entry.id
        assert exported[0]["integrity_hash"] == entry.integrity_hash

    @pytest.mark.asyncio
    async def test_csv(self, audit_log):
        await _append(audit_log, details={"record": 1})
        await _append(audit_log, actor_id=None)

        rows = list(csv.reader(io.StringIO(await audit_log.export(fmt="csv"))))

        assert rows[0] == [
            "timestamp", "action", "severity", "actor_id", "source_ip",
            "request_path", "method", "details", "integrity_hash",
        ]
        assert len(rows) == 3
        assert rows[1][2] == "low"
        assert rows[1][3] == ""
        assert json.loads(rows[2][7]) == {"record": 1}

    @pytest.mark.asyncio
    async def test_invalid_format(self, audit_log):
        with pytest.raises(ValueError):
            await audit_log.export(fmt="xml")
