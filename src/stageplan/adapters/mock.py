from typing import Any, Optional

from stageplan.models.enums import TransferJobType

from .base import ReplicaCatalog, RucioAdapter, TransferRefiner


class MockTransferRefiner(TransferRefiner):
    description = "Mock"

    def __init__(
        self,
        preference: Optional[str] = None,
        remote_sites: Optional[dict[TransferJobType, set[str]]] = None,
    ):
        self.calls: list[tuple[str, tuple, dict]] = []
        self.preference = preference
        self.remote_sites = remote_sites or {}
        self.done_count = 0

    def add_stage_in(self, job, local, remote) -> None:
        self.calls.append(("add_stage_in", (job, list(local), list(remote)), {}))

    def add_inter_site(self, job, transfers, runs_locally) -> None:
        self.calls.append(("add_inter_site", (job, list(transfers), runs_locally), {}))

    def add_stage_out(self, job, transfers, catalog: ReplicaCatalog, runs_locally, deleted_job=False) -> None:
        self.calls.append((
            "add_stage_out", (job, list(transfers), runs_locally), {"deleted_job": deleted_job},
        ))

    def done(self) -> None:
        self.calls.append(("done", (), {}))
        self.done_count += 1

    def prefers_transfer_location(self) -> bool:
        return self.preference is not None

    def prefers_local_transfers(self, job_type: TransferJobType) -> bool:
        return self.preference == "local"

    def run_transfer_remotely(self, site: str, job_type: TransferJobType) -> bool:
        return site in self.remote_sites.get(job_type, set())

    def calls_named(self, name: str) -> list[tuple]:
        return [args for n, args, _ in self.calls if n == name]


class MockRucioAdapter(RucioAdapter):
    def __init__(self, replicas: Optional[dict[str, list[dict[str, Any]]]] = None):
        self.calls: list[tuple[str, tuple, dict]] = []
        self.replicas = replicas or {}

    async def get_replicas(self, lfns: list[str]) -> dict[str, list[dict[str, Any]]]:
        self.calls.append(("get_replicas", (lfns,), {}))
        return {lfn: list(self.replicas.get(lfn, [])) for lfn in lfns}
