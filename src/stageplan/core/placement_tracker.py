"""Transient replica catalog for one planning run.

Records where each logical file has been placed by the decisions made so
far. A later record for the same lfn replaces the earlier one. Nothing is
persisted; the planner builds a fresh instance per run.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

from stageplan.models.replica import ReplicaEntry, ReplicaLocation

logger = logging.getLogger(__name__)


class TransientReplicaCatalog:
    def __init__(self) -> None:
        self._entries: dict[str, ReplicaEntry] = {}

    def record(self, lfn: str, pfn: str, site: str) -> None:
        logger.debug("Tracking %s -> %s on site %s", lfn, pfn, site)
        self._entries[lfn] = ReplicaEntry(pfn=pfn, site=site)

    def lookup(self, lfn: str) -> Optional[ReplicaEntry]:
        return self._entries.get(lfn)

    def location(self, lfn: str) -> Optional[ReplicaLocation]:
        entry = self._entries.get(lfn)
        if entry is None:
            return None
        return ReplicaLocation(lfn=lfn, entries=[entry])

    def __contains__(self, lfn: str) -> bool:
        return lfn in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> Iterator[tuple[str, ReplicaEntry]]:
        return iter(self._entries.items())

    def to_dict(self) -> dict[str, Any]:
        return {lfn: {"pfn": e.pfn, "site": e.site} for lfn, e in self._entries.items()}
