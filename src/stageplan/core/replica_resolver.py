"""Replica Resolver: catalog lookups plus the pluggable selection policy.

Placements recorded earlier in the run are offered after the durable
catalog's replicas, never instead of them. Jobs wrapping a nested
workflow resolve their description file to a local path on the job
instead of producing a transfer.
"""

from __future__ import annotations

import logging
from typing import Optional

from stageplan.adapters.base import ReplicaCatalog, ReplicaSelector
from stageplan.core.errors import InvalidLocatorError, UnresolvableInputError
from stageplan.core.jobs import Job, LogicalFile
from stageplan.core.locator import is_local_path, path_of
from stageplan.core.placement_tracker import TransientReplicaCatalog
from stageplan.models.enums import JobKind
from stageplan.models.replica import ReplicaEntry, ReplicaLocation

logger = logging.getLogger(__name__)


class ReplicaResolver:
    def __init__(
        self,
        catalog: ReplicaCatalog,
        selector: ReplicaSelector,
        tracker: Optional[TransientReplicaCatalog] = None,
    ):
        self.catalog = catalog
        self.selector = selector
        self.tracker = tracker

    def locations(self, lfn: str) -> Optional[ReplicaLocation]:
        """Durable replicas of ``lfn`` followed by this run's placement of it.

        Entries are unique by pfn (ignoring case), so the selector still sees
        every catalogued replica, including one at the target site.
        """
        durable = self.catalog.lookup(lfn)
        tracked = self.tracker.lookup(lfn) if self.tracker is not None else None
        if tracked is None:
            return durable
        if durable is None:
            return self.tracker.location(lfn)

        merged = ReplicaLocation(lfn=lfn, entries=list(durable.entries))
        if tracked.pfn.lower() not in {e.pfn.lower() for e in merged.entries}:
            merged.add(tracked)
        return merged

    def durable_locations(self, lfn: str) -> Optional[ReplicaLocation]:
        return self.catalog.lookup(lfn)

    def resolve(self, pf: LogicalFile, job: Job, prefer_local: bool) -> Optional[ReplicaEntry]:
        """Source replica for input ``pf`` of ``job``.

        An optional input with no known location is removed from the job's
        inputs and None is returned; a required one is fatal.
        """
        if pf.source is not None:
            return ReplicaEntry(pfn=pf.source.url, site=pf.source.site)

        location = self.locations(pf.lfn)
        if location is None:
            if pf.optional:
                job.remove_input(pf)
                logger.debug("Dropping optional input %s of job %s: no location found", pf.lfn, job.name)
                return None
            raise UnresolvableInputError(
                f"Can't determine a location to transfer input file for lfn {pf.lfn} "
                f"for job {job.name}"
            )
        return self.select_one(location, job.site, prefer_local)

    def select_one(self, location: ReplicaLocation, site: str, prefer_local: bool) -> ReplicaEntry:
        entry = self.selector.select_one(location, site, prefer_local)
        if entry is None:
            raise UnresolvableInputError(
                f"No usable replica of {location.lfn} for site {site} among {location.pfns}"
            )
        return entry

    def select_many(self, location: ReplicaLocation, site: str, prefer_local: bool) -> list[ReplicaEntry]:
        return self.selector.select_many(location, site, prefer_local)

    # ── Nested workflows ─────────────────────────────────────

    def resolve_subworkflow(self, job: Job) -> str:
        """Resolve a nested workflow job's description file to a local path.

        The nested workflow resolves its own data, so every input of the
        wrapping job is dropped.
        """
        if job.kind == JobKind.ORDINARY:
            raise ValueError(f"Job {job.name} does not wrap a workflow")

        job.input_files.clear()

        lfn = job.subworkflow_lfn
        label = "planned workflow" if job.kind == JobKind.NESTED_PLANNED else "abstract workflow"
        location = self.locations(lfn) if lfn else None
        if location is None:
            raise UnresolvableInputError(
                f"Can't determine a location for {label} lfn {lfn} for job {job.name}"
            )

        entry = self.select_one(location, job.site, True)
        path = _local_path(entry.pfn)
        if path is None:
            raise InvalidLocatorError(
                f"Invalid URL specified for {label} job {job.name} -> {entry.pfn}"
            )

        if job.kind == JobKind.NESTED_PLANNED:
            job.description_file = path
            job.directory = job.external_directory
            job.external_directory = None
        else:
            job.arguments = f"{job.arguments} --dax {path}".strip()
        logger.debug("Resolved %s for job %s to %s", label, job.name, path)
        return path


def _local_path(pfn: str) -> Optional[str]:
    if not is_local_path(pfn):
        return None
    return path_of(pfn)
