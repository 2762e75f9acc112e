"""Bundled transfer refiner that collects descriptor batches into a plan."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from stageplan.config import Settings
from stageplan.core.jobs import FileTransfer, Job
from stageplan.models.enums import TransferJobType

from .base import ReplicaCatalog, TransferRefiner

logger = logging.getLogger(__name__)


@dataclass
class TransferBatch:
    kind: TransferJobType
    job_name: str
    site: str
    staging_site: Optional[str]
    level: int
    runs_locally: bool
    transfers: list[FileTransfer] = field(default_factory=list)
    deleted_job: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "job": self.job_name,
            "site": self.site,
            "staging_site": self.staging_site,
            "level": self.level,
            "runs_locally": self.runs_locally,
            "deleted_job": self.deleted_job,
            "transfers": [ft.to_dict() for ft in self.transfers],
        }


@dataclass
class TransferPlan:
    batches: list[TransferBatch] = field(default_factory=list)
    completed: bool = False

    def of_kind(self, kind: TransferJobType) -> list[TransferBatch]:
        return [b for b in self.batches if b.kind == kind]

    def transfer_count(self) -> int:
        return sum(len(b.transfers) for b in self.batches)

    def summary(self) -> dict[str, int]:
        counts = {kind.value: 0 for kind in TransferJobType}
        for b in self.batches:
            counts[b.kind.value] += len(b.transfers)
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": self.completed,
            "summary": self.summary(),
            "batches": [b.to_dict() for b in self.batches],
        }


class CollectingRefiner(TransferRefiner):
    """Keeps every batch it is handed; placement advice comes from settings."""

    description = "Collecting"

    def __init__(self, settings: Settings):
        self.settings = settings
        self.plan = TransferPlan()

    def _add(self, kind: TransferJobType, job: Job, transfers: list[FileTransfer],
             runs_locally: bool, deleted_job: bool = False) -> None:
        if self.plan.completed:
            raise RuntimeError("Refiner already marked done")
        if not transfers:
            return
        self.plan.batches.append(TransferBatch(
            kind=kind,
            job_name=job.name,
            site=job.site,
            staging_site=job.staging_site,
            level=job.level,
            runs_locally=runs_locally,
            transfers=list(transfers),
            deleted_job=deleted_job,
        ))

    def add_stage_in(self, job: Job, local: list[FileTransfer], remote: list[FileTransfer]) -> None:
        self._add(TransferJobType.STAGE_IN, job, local, True)
        self._add(TransferJobType.STAGE_IN, job, remote, False)

    def add_inter_site(self, job: Job, transfers: list[FileTransfer], runs_locally: bool) -> None:
        self._add(TransferJobType.INTER_SITE, job, transfers, runs_locally)

    def add_stage_out(
        self,
        job: Job,
        transfers: list[FileTransfer],
        catalog: ReplicaCatalog,
        runs_locally: bool,
        deleted_job: bool = False,
    ) -> None:
        self._add(TransferJobType.STAGE_OUT, job, transfers, runs_locally, deleted_job)

    def done(self) -> None:
        if self.plan.completed:
            raise RuntimeError("Refiner already marked done")
        self.plan.completed = True
        logger.info(
            "Transfer plan complete: %d batches, %d transfers",
            len(self.plan.batches), self.plan.transfer_count(),
        )

    def prefers_transfer_location(self) -> bool:
        return self.settings.transfer_location_preference is not None

    def prefers_local_transfers(self, job_type: TransferJobType) -> bool:
        return self.settings.transfer_location_preference != "remote"

    def run_transfer_remotely(self, site: str, job_type: TransferJobType) -> bool:
        sites = self.settings.remote_transfer_sites.get(job_type.value, [])
        return "*" in sites or site in sites
