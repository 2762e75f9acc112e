import pytest

from stageplan.adapters.catalog import InMemoryReplicaCatalog
from stageplan.adapters.mock import MockTransferRefiner
from stageplan.adapters.selectors import DefaultReplicaSelector
from stageplan.config import Settings
from stageplan.core.graph import WorkflowGraph
from stageplan.core.jobs import Job, LogicalFile
from stageplan.core.replica_resolver import ReplicaResolver
from stageplan.core.transfer_planner import TransferPlanner
from stageplan.models.enums import DirectoryType, Operation
from stageplan.models.site import Directory, FileServer, SiteEntry, SiteStore


def make_scratch_site(name, url_prefix, mount_point, internal_mount_point="", operation=Operation.ALL):
    return SiteEntry(
        name=name,
        directories=[
            Directory(
                type=DirectoryType.SHARED_SCRATCH,
                internal_mount_point=internal_mount_point or mount_point,
                file_servers=[FileServer(url_prefix=url_prefix, mount_point=mount_point, operation=operation)],
            ),
        ],
    )


def make_output_site(name="out", put_servers=None, get_servers=None):
    put_servers = put_servers if put_servers is not None else [("gsiftp://out.example.org", "/storage")]
    get_servers = get_servers if get_servers is not None else [("http://out.example.org", "/storage")]
    servers = [
        FileServer(url_prefix=prefix, mount_point=mount, operation=Operation.PUT)
        for prefix, mount in put_servers
    ] + [
        FileServer(url_prefix=prefix, mount_point=mount, operation=Operation.GET)
        for prefix, mount in get_servers
    ]
    return SiteEntry(
        name=name,
        directories=[
            Directory(type=DirectoryType.SHARED_STORAGE, internal_mount_point="/storage", file_servers=servers),
        ],
    )


def make_site_store(*extra_sites, relative_work_dir="run0001", relative_storage_dir=""):
    sites = [
        make_scratch_site("local", "file://", "/submit/scratch"),
        make_scratch_site("siteA", "gsiftp://a.example.org", "/scratch/a", "/internal/a"),
        make_scratch_site("siteB", "gsiftp://b.example.org", "/scratch/b", "/internal/b"),
        make_output_site(),
        *extra_sites,
    ]
    return SiteStore(
        sites={s.name: s for s in sites},
        relative_work_dir=relative_work_dir,
        relative_storage_dir=relative_storage_dir,
    )


def make_job(name, site, inputs=(), outputs=(), **kwargs):
    job = Job(name=name, site=site, **kwargs)
    for pf in inputs:
        job.add_input(pf if isinstance(pf, LogicalFile) else LogicalFile(pf))
    for pf in outputs:
        job.add_output(pf if isinstance(pf, LogicalFile) else LogicalFile(pf))
    return job


def make_graph(jobs, edges=()):
    graph = WorkflowGraph()
    for job in jobs:
        graph.add_job(job)
    for parent, child in edges:
        graph.add_dependency(parent, child)
    return graph


def make_planner(settings=None, site_store=None, catalog=None, refiner=None):
    settings = settings or Settings()
    refiner = refiner or MockTransferRefiner()
    resolver = ReplicaResolver(
        catalog if catalog is not None else InMemoryReplicaCatalog(),
        DefaultReplicaSelector(settings.submit_site),
    )
    planner = TransferPlanner(settings, site_store or make_site_store(), resolver, refiner)
    return planner, refiner


@pytest.fixture
def settings():
    return Settings(output_site=None, log_level="DEBUG")


@pytest.fixture
def site_store():
    return make_site_store()


@pytest.fixture
def refiner():
    return MockTransferRefiner()
