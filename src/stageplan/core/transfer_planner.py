"""Transfer Planner: adds the data movement a finalized workflow needs.

One pass over the workflow graph, parents before children. For every job:

1. inter-site transfers for parent outputs whose staging site differs,
2. stage-in transfers for inputs no parent produces, resolved through the
   replica catalog (nested workflow jobs resolve their description instead),
3. stage-out transfers of every output to the output site, or, with no
   output site, just a placement record of each output.

Jobs removed by upstream reduction then stage their existing replicas
straight to the output site. Batches go to the transfer refiner as they are
built; the refiner's ``done()`` is called once at the end.

Placements are recorded in a per-run transient catalog which the replica
resolver layers after the durable catalog, so the visiting order is
load-bearing: a child sees everything its ancestors placed.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from stageplan.adapters.base import TransferRefiner
from stageplan.config import Settings
from stageplan.core.errors import PlanningError, UnresolvableInputError
from stageplan.core.graph import WorkflowGraph
from stageplan.core.jobs import FileTransfer, Job, LogicalFile
from stageplan.core.locator import build_srm_map, equivalent, path_of, to_file_url, to_symlink_url
from stageplan.core.output_layout import OutputLayout, create_layout
from stageplan.core.placement_tracker import TransientReplicaCatalog
from stageplan.core.replica_resolver import ReplicaResolver
from stageplan.core.url_builder import URLBuilder
from stageplan.models.enums import JobKind, Operation, TransferJobType, TransferMode
from stageplan.models.site import Directory, SiteStore

logger = logging.getLogger(__name__)

# Level given to jobs removed by reduction, so their stage-out sorts last
DELETED_JOBS_LEVEL = 1000


class TransferPlanner:
    def __init__(
        self,
        settings: Settings,
        site_store: SiteStore,
        resolver: ReplicaResolver,
        refiner: TransferRefiner,
    ):
        self.settings = settings
        self.site_store = site_store
        self.resolver = resolver
        self.refiner = refiner
        self.urls = URLBuilder(
            site_store, refiner,
            submit_site=settings.submit_site,
            srm_map=build_srm_map(settings.srm),
        )

        # Per-run state, rebuilt by plan()
        self.tracker = TransientReplicaCatalog()
        self.layout: Optional[OutputLayout] = None
        self._storage_directory: Optional[Directory] = None

        logger.debug("Transfer refiner loaded is [%s]", refiner.description)
        logger.debug("Replica selector loaded is [%s]", resolver.selector.description)
        if settings.worker_node_execution:
            logger.debug("Worker node execution enabled; first level staging is still planned")

    def staging_site(self, job: Job) -> str:
        """Staging site configured for the job's execution site, else that site."""
        return self.settings.staging_sites.get(job.site, job.site)

    # ── Planning pass ────────────────────────────────────────

    def plan(
        self,
        graph: WorkflowGraph,
        output_site: Optional[str] = None,
        deleted_jobs: Iterable[Job] = (),
    ) -> TransientReplicaCatalog:
        """Plan every transfer of ``graph``; returns the run's placement records."""
        if output_site is None:
            output_site = self.settings.output_site
        if output_site is not None and not output_site.strip():
            output_site = None
        deleted_jobs = list(deleted_jobs)

        self.tracker = TransientReplicaCatalog()
        self.resolver.tracker = self.tracker
        self._init_output_layout(graph, deleted_jobs, output_site)

        for job, depth in graph.walk():
            job.level = depth
            if not job.staging_site:
                job.staging_site = self.staging_site(job)
            logger.debug(
                "Job being traversed is %s, to be run at %s with staging site %s",
                job.name, job.site, job.staging_site,
            )

            parents = graph.parents(job)
            logger.debug("Parents of job %s: %s", job.name, [p.name for p in parents])
            self._process_parents(job, parents)

            if output_site:
                self._stage_out(job, output_site)
            else:
                self._track_outputs(job)

        if output_site and deleted_jobs:
            logger.info("Adding stage out jobs for %d jobs deleted from the workflow", len(deleted_jobs))
            level = max(DELETED_JOBS_LEVEL, graph.max_depth() + 1)
            for job in deleted_jobs:
                job.level = level
                # Deleted jobs never run; their outputs are moved from the submit site
                job.site = self.settings.submit_site
                job.staging_site = self.staging_site(job)
                transfers = self._deleted_file_transfers(output_site, job)
                if transfers:
                    self.refiner.add_stage_out(
                        job, transfers, self.resolver.catalog, True, deleted_job=True,
                    )

        self.refiner.done()
        return self.tracker

    def _init_output_layout(
        self, graph: WorkflowGraph, deleted_jobs: list[Job], output_site: Optional[str]
    ) -> None:
        self.layout = None
        self._storage_directory = None
        if not output_site:
            logger.debug("No output site, output layout not initialized")
            return

        self._storage_directory = self.urls.storage_directory(output_site)
        total = 0
        if self.settings.deep_storage_structure:
            for job in [*graph.jobs(), *deleted_jobs]:
                total += sum(1 for pf in job.output_files if not pf.transient_transfer)
        self.layout = create_layout(
            self.settings.deep_storage_structure,
            self.site_store.relative_storage_dir,
            total,
            self.settings.output_fanout,
        )
        logger.debug("Output layout is %s", self.layout.description)

    # ── Parents, inter-site and stage-in ─────────────────────

    def _process_parents(self, job: Job, parents: list[Job]) -> None:
        parent_outputs: set[LogicalFile] = set()
        for parent in parents:
            parent_outputs.update(parent.output_files)

        local, remote = self._inter_site_transfers(job, parents)
        if local:
            self.refiner.add_inter_site(job, local, True)
        if remote:
            self.refiner.add_inter_site(job, remote, False)

        search = [
            pf for pf in job.input_files
            if pf not in parent_outputs and not pf.transient_transfer
        ]
        if not search:
            return
        if job.kind != JobKind.ORDINARY:
            self.resolver.resolve_subworkflow(job)
        else:
            self._stage_in(job, search)

    def _inter_site_transfers(
        self, job: Job, parents: list[Job]
    ) -> tuple[list[FileTransfer], list[FileTransfer]]:
        """Parent outputs needed by ``job`` that sit on another staging site.

        Returns ``(local, remote)`` batches split by where the transfer runs.
        """
        dest_site = job.staging_site
        self.urls.site(dest_site)
        local: list[FileTransfer] = []
        remote: list[FileTransfer] = []
        seen: set[str] = set()

        for parent in parents:
            source_site = parent.staging_site or self.staging_site(parent)
            self.urls.site(source_site)
            if source_site.lower() == dest_site.lower():
                # parent and child share a work directory
                continue

            shared = [
                pf for pf in parent.output_files
                if pf in job.input_files and pf.lfn not in seen
                and not (pf.transient_transfer and pf.transient_registration)
            ]
            if not shared:
                continue

            third_party_dir = self.urls.scratch_directory_url(dest_site, Operation.PUT, job.name)
            runs_locally = self.urls.run_transfer_on_local_site(
                dest_site, third_party_dir, TransferJobType.INTER_SITE,
            )
            dest_dir = (
                third_party_dir if runs_locally
                else self.urls.internal_directory_url(dest_site, job.remote_initial_dir)
            )

            for pf in shared:
                seen.add(pf.lfn)
                dest_url = f"{dest_dir}/{pf.lfn}"
                third_party_url = f"{third_party_dir}/{pf.lfn}"

                ft = FileTransfer.for_file(pf, parent.name)
                ft.add_destination(dest_site, dest_url)
                self.tracker.record(pf.lfn, dest_url, dest_site)

                for source_url in self.urls.scratch_source_urls(source_site, pf.lfn):
                    if source_url.lower() != third_party_url.lower():
                        ft.add_source(source_site, source_url)

                if ft.is_valid():
                    (local if runs_locally else remote).append(ft)

        return local, remote

    def _stage_in(self, job: Job, search: list[LogicalFile]) -> None:
        staging_site = job.staging_site
        server = self.urls.scratch_server(staging_site, Operation.PUT, job.name)
        dest_dir_url = server.url_prefix + self.site_store.external_work_directory(server)
        file_dest_dir = self.urls.internal_directory_url(staging_site, job.remote_initial_dir)

        runs_locally = self.urls.run_transfer_on_local_site(
            staging_site, dest_dir_url, TransferJobType.STAGE_IN,
        )
        dest_dir = dest_dir_url if runs_locally else file_dest_dir

        local: list[FileTransfer] = []
        remote: list[FileTransfer] = []
        for pf in search:
            dest_url = None
            if pf.pre_resolved:
                if pf.destination is None:
                    raise PlanningError(
                        f"Input {pf.lfn} of job {job.name} has a source but no destination"
                    )
                dest_url = pf.destination.url
                if not self.urls.run_transfer_on_local_site(
                    staging_site, dest_url, TransferJobType.STAGE_IN,
                ):
                    dest_url = to_file_url(path_of(dest_url))

            selected = self.resolver.resolve(pf, job, runs_locally)
            if selected is None:
                continue

            symlink = self.settings.use_symlinks and selected.site == staging_site
            if symlink:
                selected = self.urls.local_replica(selected)
            source_url = selected.pfn

            if dest_url is None:
                base = to_symlink_url(dest_dir) if symlink else dest_dir
                dest_url = f"{base}/{pf.lfn}"

            staged_url = f"{dest_dir_url}/{pf.lfn}"
            if equivalent(source_url, staged_url, selected.site, staging_site, pf.lfn):
                logger.debug(
                    "Not transferring input file %s for job %s to site %s: already in place",
                    pf.lfn, job.name, staging_site,
                )
                continue

            # first level staging is always planned, the staged copy is what later jobs see
            self.tracker.record(pf.lfn, staged_url, staging_site)

            ft = FileTransfer.for_file(pf, job.name)
            ft.add_source(selected.site, source_url)
            ft.add_destination(staging_site, dest_url)
            if symlink or not runs_locally:
                remote.append(ft)
            else:
                local.append(ft)

        if local or remote:
            self.refiner.add_stage_in(job, local, remote)

    # ── Stage-out ────────────────────────────────────────────

    def _stage_out(self, job: Job, output_site: str) -> None:
        staging_site = job.staging_site
        staging_prefix = self.urls.scratch_directory_url(staging_site, Operation.PUT, job.name)
        runs_locally = self.urls.run_transfer_on_local_site(
            job.site, staging_prefix, TransferJobType.STAGE_OUT,
        )

        transfers = []
        for pf in job.output_files:
            ft = self._stage_out_transfer(pf, job, output_site, runs_locally)
            if ft is not None:
                transfers.append(ft)
        if transfers:
            self.refiner.add_stage_out(job, transfers, self.resolver.catalog, runs_locally)

    def _stage_out_transfer(
        self, pf: LogicalFile, job: Job, output_site: str, runs_locally: bool
    ) -> Optional[FileTransfer]:
        staging_site = job.staging_site
        self.urls.site(output_site)
        exec_url = self.urls.staging_url(staging_site, pf.lfn, Operation.PUT, job.name)
        self.tracker.record(pf.lfn, exec_url, staging_site)

        if pf.transient_registration and pf.transient_transfer:
            return None

        ft = FileTransfer.for_file(pf, job.name)
        if pf.transient_transfer:
            # stays in the work directory; only registration may be needed
            ft.add_source(staging_site, exec_url)
            ft.add_destination(staging_site, exec_url)
            ft.registration_url = exec_url
            return ft

        if runs_locally:
            source_url = exec_url
        else:
            source_url = f"{self.urls.internal_directory_url(staging_site, job.remote_initial_dir)}/{pf.lfn}"
        ft.add_source(staging_site, source_url)

        if pf.destination is not None:
            ft.add_destination(pf.destination.site, pf.destination.url)
            return ft

        relative = self.layout.allocate(pf.lfn)
        destinations = self.urls.output_destinations(
            self._storage_directory, output_site, relative, exec_url,
        )
        if destinations is None:
            logger.debug("Output %s of job %s is already on the output site", pf.lfn, job.name)
            ft.add_destination(staging_site, exec_url)
            ft.registration_url = exec_url
            ft.transfer_mode = TransferMode.NEVER
            return ft

        ft.destinations.extend(destinations)
        ft.registration_url = self.urls.registration_url(self._storage_directory, output_site, relative)
        return ft

    def _track_outputs(self, job: Job) -> None:
        """Record where outputs land when nothing is staged out."""
        for pf in job.output_files:
            url = self.urls.staging_url(job.staging_site, pf.lfn, Operation.GET, job.name)
            self.tracker.record(pf.lfn, url, job.staging_site)

    def _deleted_file_transfers(self, output_site: str, job: Job) -> list[FileTransfer]:
        """Stage existing replicas of a deleted job's outputs to the output site."""
        transfers = []
        for pf in job.output_files:
            if pf.transient_transfer:
                continue

            location = self.resolver.durable_locations(pf.lfn)
            if location is None:
                raise UnresolvableInputError(
                    f"Unable to find a location in the replica catalog for output file {pf.lfn} "
                    f"of deleted job {job.name}"
                )

            relative = self.layout.allocate(pf.lfn)
            put_url = self.urls.output_url_for(self._storage_directory, Operation.PUT, relative, output_site)
            get_url = self.urls.output_url_for(self._storage_directory, Operation.GET, relative, output_site)
            candidates = self.resolver.select_many(
                location, output_site,
                self.urls.run_transfer_on_local_site(output_site, put_url, TransferJobType.STAGE_OUT),
            )

            if any(equivalent(c.pfn, put_url) for c in candidates):
                logger.info("The leaf file %s is already at the output site %s", pf.lfn, output_site)
                continue
            if not candidates:
                raise UnresolvableInputError(
                    f"No usable replica of output file {pf.lfn} of deleted job {job.name} "
                    f"for output site {output_site}"
                )

            ft = FileTransfer.for_file(pf, job.name)
            for c in candidates:
                ft.add_source(c.site, c.pfn)
            ft.add_destination(output_site, put_url)
            ft.registration_url = get_url
            transfers.append(ft)
        return transfers
