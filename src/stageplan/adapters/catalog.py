"""Replica catalogs backing the planner's lookups."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Optional

from stageplan.models.replica import ReplicaEntry, ReplicaLocation

from .base import ReplicaCatalog, RucioAdapter

logger = logging.getLogger(__name__)


class InMemoryReplicaCatalog(ReplicaCatalog):
    def __init__(self, data: Optional[dict[str, list[dict[str, Any]]]] = None):
        self._locations: dict[str, ReplicaLocation] = {}
        for lfn, entries in (data or {}).items():
            for raw in entries:
                self.insert(lfn, raw["pfn"], raw["site"], raw.get("attributes"))

    def insert(self, lfn: str, pfn: str, site: str, attributes: Optional[dict] = None) -> None:
        location = self._locations.setdefault(lfn, ReplicaLocation(lfn=lfn))
        location.add(ReplicaEntry(pfn=pfn, site=site, attributes=attributes or {}))

    def lookup(self, lfn: str) -> Optional[ReplicaLocation]:
        location = self._locations.get(lfn)
        if location is None or not location.entries:
            return None
        return location

    def __len__(self) -> int:
        return len(self._locations)

    @classmethod
    def from_file(cls, path: str) -> InMemoryReplicaCatalog:
        """Load ``{lfn: [{"pfn": ..., "site": ...}, ...]}`` from JSON."""
        with open(path) as f:
            data = json.load(f)
        catalog = cls(data)
        logger.info("Loaded %d logical files from replica catalog %s", len(catalog), path)
        return catalog


async def prefetch_replicas(adapter: RucioAdapter, lfns: Iterable[str]) -> InMemoryReplicaCatalog:
    """Bulk-load replicas for ``lfns`` so planning itself never blocks on I/O."""
    wanted = sorted(set(lfns))
    if not wanted:
        return InMemoryReplicaCatalog()
    replicas = await adapter.get_replicas(wanted)
    catalog = InMemoryReplicaCatalog(replicas)
    missing = [lfn for lfn in wanted if catalog.lookup(lfn) is None]
    if missing:
        logger.info("%d of %d files have no replica in Rucio", len(missing), len(wanted))
    return catalog
