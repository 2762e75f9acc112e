from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Optional

from stageplan.models.enums import TransferJobType
from stageplan.models.replica import ReplicaEntry, ReplicaLocation

if TYPE_CHECKING:
    from stageplan.core.jobs import FileTransfer, Job


class ReplicaCatalog(ABC):
    @abstractmethod
    def lookup(self, lfn: str) -> Optional[ReplicaLocation]:
        """All known locations of a logical file, or None if unknown."""


class ReplicaSelector(ABC):
    description: str = ""

    @abstractmethod
    def select_one(
        self, location: ReplicaLocation, site: str, prefer_local: bool
    ) -> Optional[ReplicaEntry]:
        """Pick the replica to use for a single-destination transfer."""

    @abstractmethod
    def select_many(
        self, location: ReplicaLocation, site: str, prefer_local: bool
    ) -> list[ReplicaEntry]:
        """Filtered, deduplicated candidates for ``site``."""


class TransferRefiner(ABC):
    """Turns transfer descriptor batches into executable transfer jobs."""

    description: str = ""

    @abstractmethod
    def add_stage_in(
        self, job: Job, local: list[FileTransfer], remote: list[FileTransfer]
    ) -> None:
        """Stage-in batches for ``job``, split by where the transfer runs."""

    @abstractmethod
    def add_inter_site(self, job: Job, transfers: list[FileTransfer], runs_locally: bool) -> None:
        """Parent-to-child transfers between staging sites."""

    @abstractmethod
    def add_stage_out(
        self,
        job: Job,
        transfers: list[FileTransfer],
        catalog: ReplicaCatalog,
        runs_locally: bool,
        deleted_job: bool = False,
    ) -> None:
        """Stage-out transfers of ``job``'s outputs to the output site."""

    @abstractmethod
    def done(self) -> None:
        """Called exactly once after the planning pass."""

    def prefers_transfer_location(self) -> bool:
        """Whether the refiner dictates where every transfer class runs."""
        return False

    def prefers_local_transfers(self, job_type: TransferJobType) -> bool:
        return True

    def run_transfer_remotely(self, site: str, job_type: TransferJobType) -> bool:
        return False


class RucioAdapter(ABC):
    @abstractmethod
    async def get_replicas(self, lfns: list[str]) -> dict[str, list[dict[str, Any]]]:
        """Get replica pfns for a list of LFNs.

        Returns ``{lfn: [{"pfn": ..., "site": ..., "attributes": {...}}]}``.
        """
