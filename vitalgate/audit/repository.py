"""
Audit Repository
================
Storage contract for the audit chain and an in-memory arena implementation.
"""

import asyncio
import dataclasses
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

import structlog

from ..errors import ChainConflict
from .hashing import GENESIS_HASH
from .models import AuditLogEntry, ChainAnchor

logger = structlog.get_logger(__name__)


class AuditRepository(Protocol):
    """
    Persistence for an ordered, hash-chained audit log.

    ``append_if_head`` is a compare-and-swap on the chain head: the entry is
    stored only if the current head hash still equals ``expected_head``,
    otherwise ChainConflict is raised and nothing is written.
    """

    async def head(self) -> str:
        ...

    async def root_hash(self) -> str:
        ...

    async def append_if_head(self, expected_head: str, entry: AuditLogEntry) -> AuditLogEntry:
        ...

    async def get(self, entry_id: str) -> Optional[AuditLogEntry]:
        ...

    async def get_previous(self, entry: AuditLogEntry) -> Optional[AuditLogEntry]:
        ...

    async def list_entries(self) -> List[AuditLogEntry]:
        ...

    async def prune_oldest(self, cutoff: datetime) -> int:
        ...


class InMemoryAuditRepository:
    """
    Arena-style append-only sequence with an explicit head pointer.

    Entries are addressed by ``sequence - base``; pruning removes from the
    front and advances ``base``. For development and testing, and as the
    reference behaviour for durable implementations.
    """

    def __init__(self):
        self._entries: List[AuditLogEntry] = []
        self._positions: Dict[str, int] = {}  # id -> sequence
        self._base = 0  # sequence of _entries[0]
        self._next_sequence = 0
        self._head = GENESIS_HASH
        self._root = GENESIS_HASH
        self._anchors: List[ChainAnchor] = []
        self._lock = asyncio.Lock()

    async def head(self) -> str:
        return self._head

    async def root_hash(self) -> str:
        return self._root

    async def append_if_head(self, expected_head: str, entry: AuditLogEntry) -> AuditLogEntry:
        async with self._lock:
            if self._head != expected_head:
                raise ChainConflict(expected_head, self._head)

            stored = dataclasses.replace(entry, sequence=self._next_sequence)
            self._entries.append(stored)
            self._positions[stored.id] = stored.sequence
            self._next_sequence += 1
            self._head = stored.integrity_hash
            return stored

    async def get(self, entry_id: str) -> Optional[AuditLogEntry]:
        sequence = self._positions.get(entry_id)
        if sequence is None:
            return None
        return self._entries[sequence - self._base]

    async def get_previous(self, entry: AuditLogEntry) -> Optional[AuditLogEntry]:
        index = entry.sequence - self._base - 1
        if index < 0:
            return None
        return self._entries[index]

    async def list_entries(self) -> List[AuditLogEntry]:
        return list(self._entries)

    async def anchors(self) -> List[ChainAnchor]:
        return list(self._anchors)

    async def prune_oldest(self, cutoff: datetime) -> int:
        """
        Remove the contiguous run of oldest entries with ``timestamp <= cutoff``.

        Pruning stops at the first entry that is newer than the cutoff, even
        if later entries are older (caller-supplied timestamps). A chain
        anchor is recorded so the first surviving entry still verifies.
        """
        async with self._lock:
            removed = 0
            for entry in self._entries:
                if entry.timestamp > cutoff:
                    break
                removed += 1

            if removed == 0:
                return 0

            anchor_hash = self._entries[removed - 1].integrity_hash
            for entry in self._entries[:removed]:
                del self._positions[entry.id]
            del self._entries[:removed]
            self._base += removed

            # Surviving entries chain on from the last removed hash; an empty
            # log keeps the head so new appends chain against the anchor.
            self._root = anchor_hash
            self._anchors.append(ChainAnchor(
                anchor_hash=anchor_hash,
                created_at=datetime.now(timezone.utc),
                removed_count=removed,
                first_surviving_id=self._entries[0].id if self._entries else None,
            ))

            logger.info(
                "audit_chain_reanchored",
                removed=removed,
                anchor_hash=anchor_hash[:16],
            )
            return removed
