"""CLI runner: load a reduced workflow, plan its data movement, report the batches."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from stageplan.adapters.catalog import InMemoryReplicaCatalog, prefetch_replicas
from stageplan.adapters.refiner import CollectingRefiner
from stageplan.adapters.selectors import get_selector
from stageplan.config import Settings
from stageplan.core.errors import PlanningError
from stageplan.core.graph import WorkflowGraph, load_workflow
from stageplan.core.jobs import Job
from stageplan.core.replica_resolver import ReplicaResolver
from stageplan.core.transfer_planner import TransferPlanner
from stageplan.models.enums import Operation, TransferJobType
from stageplan.models.site import SiteStore, load_site_store

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stageplan",
        description="stageplan CLI — plan data movement for a reduced workflow",
    )
    sub = parser.add_subparsers(dest="command")

    plan = sub.add_parser("plan", help="Plan stage-in, inter-site and stage-out transfers")
    plan.add_argument("workflow", help="Reduced workflow JSON (jobs, edges, deleted_jobs)")
    plan.add_argument("--sites", required=True, help="Site catalog JSON")
    plan.add_argument("--replicas", default=None, help="Replica catalog JSON")
    plan.add_argument("--rucio", action="store_true", help="Prefetch replicas from Rucio")
    plan.add_argument("--output-site", default=None, help="Site to stage outputs to")
    plan.add_argument("--work-dir", default=None, help="Relative work directory on scratch")
    plan.add_argument("--storage-dir", default=None, help="Relative directory on output storage")
    plan.add_argument("--deep", action="store_true", help="Hashed output directory layout")
    plan.add_argument("--symlink", action="store_true", help="Symlink inputs already on the staging site")
    plan.add_argument("--json", dest="json_out", default=None, help="Write the plan as JSON ('-' for stdout)")
    plan.add_argument("--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    sites = sub.add_parser("sites", help="List sites with their directories and file servers")
    sites.add_argument("sites", help="Site catalog JSON")

    return parser


def build_settings(args: argparse.Namespace) -> Settings:
    """Build Settings from CLI args on top of the environment."""
    overrides: dict = {}
    if args.output_site:
        overrides["output_site"] = args.output_site
    if args.work_dir is not None:
        overrides["relative_work_dir"] = args.work_dir
    if args.storage_dir is not None:
        overrides["relative_storage_dir"] = args.storage_dir
    if args.deep:
        overrides["deep_storage_structure"] = True
    if args.symlink:
        overrides["use_symlinks"] = True
    if args.log_level:
        overrides["log_level"] = args.log_level
    return Settings(**overrides)


def _input_lfns(graph: WorkflowGraph, deleted_jobs: list[Job]) -> set[str]:
    lfns = set()
    for job in graph.jobs():
        lfns.update(pf.lfn for pf in job.input_files)
        if job.subworkflow_lfn:
            lfns.add(job.subworkflow_lfn)
    for job in deleted_jobs:
        lfns.update(pf.lfn for pf in job.output_files)
    return lfns


async def _load_rucio_catalog(settings: Settings, lfns: set[str]) -> InMemoryReplicaCatalog:
    from stageplan.adapters.rucio import RucioClient

    if not (settings.cert_file and settings.key_file):
        raise SystemExit("Rucio lookups need STAGEPLAN_CERT_FILE and STAGEPLAN_KEY_FILE")
    client = RucioClient(
        settings.rucio_url, settings.rucio_account,
        settings.cert_file, settings.key_file, scope=settings.rucio_scope,
        site_map=settings.rucio_site_map,
        strip_suffixes=settings.rucio_strip_rse_suffixes,
        skip_suffixes=settings.rucio_skip_rse_suffixes,
    )
    try:
        return await prefetch_replicas(client, lfns)
    finally:
        await client.close()


def run_plan(args: argparse.Namespace) -> int:
    settings = build_settings(args)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()),
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    try:
        site_store = load_site_store(args.sites, settings.relative_work_dir, settings.relative_storage_dir)
        graph, deleted_jobs = load_workflow(args.workflow)
        logger.info(
            "Loaded workflow %s: %d jobs, %d edges, %d deleted jobs",
            args.workflow, len(graph), graph.edge_count, len(deleted_jobs),
        )

        if args.rucio:
            catalog = asyncio.run(_load_rucio_catalog(settings, _input_lfns(graph, deleted_jobs)))
        elif args.replicas:
            catalog = InMemoryReplicaCatalog.from_file(args.replicas)
        else:
            catalog = InMemoryReplicaCatalog()

        refiner = CollectingRefiner(settings)
        resolver = ReplicaResolver(catalog, get_selector(settings))
        planner = TransferPlanner(settings, site_store, resolver, refiner)
        placements = planner.plan(graph, settings.output_site, deleted_jobs)
    except (PlanningError, ValueError) as exc:
        # ValueError covers bad workflow graphs and unknown selector names
        print(f"Planning failed: {exc}", file=sys.stderr)
        return 1

    plan = refiner.plan
    if args.json_out:
        payload = json.dumps(
            {**plan.to_dict(), "placements": placements.to_dict()}, indent=2,
        )
        if args.json_out == "-":
            print(payload)
        else:
            with open(args.json_out, "w") as f:
                f.write(payload + "\n")
            print(f"Plan written to {args.json_out}")
        return 0

    print(f"=== stageplan: {args.workflow} ===")
    print(f"  output_site:   {settings.output_site or '-'}")
    print(f"  layout:        {planner.layout.description if planner.layout else '-'}")
    for kind, count in plan.summary().items():
        print(f"  {kind + ':':<15}{count}")
    print(f"  placements:    {len(placements)}")
    for kind in TransferJobType:
        for batch in plan.of_kind(kind):
            where = "local" if batch.runs_locally else "remote"
            print(f"  [{kind.value}] {batch.job_name} ({where}, {len(batch.transfers)} files)")
    return 0


def run_sites(args: argparse.Namespace) -> int:
    store: SiteStore = load_site_store(args.sites)
    for name, entry in sorted(store.sites.items()):
        print(name)
        for directory in entry.directories:
            print(f"  {directory.type.value}: {directory.internal_mount_point or '-'}")
            for op in Operation:
                for server in directory.servers_for(op):
                    print(f"    {op.value:<4} {server.url}")
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "plan":
        sys.exit(run_plan(args))
    elif args.command == "sites":
        sys.exit(run_sites(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
