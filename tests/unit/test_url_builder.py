import pytest

from stageplan.adapters.mock import MockTransferRefiner
from stageplan.core.errors import MissingFileServerError, MissingSiteError
from stageplan.core.jobs import SiteURL
from stageplan.core.locator import SRMMapping
from stageplan.core.url_builder import URLBuilder
from stageplan.models.enums import DirectoryType, Operation, TransferJobType
from stageplan.models.replica import ReplicaEntry
from stageplan.models.site import Directory, FileServer, SiteEntry

from .conftest import make_scratch_site, make_site_store


def _builder(refiner=None, *extra_sites, srm_map=None):
    return URLBuilder(make_site_store(*extra_sites), refiner or MockTransferRefiner(), "local", srm_map)


class TestScratchLocators:
    def test_staging_url(self):
        assert _builder().staging_url("siteA", "f") == "gsiftp://a.example.org/scratch/a/run0001/f"

    def test_internal_directory(self):
        builder = _builder()
        assert builder.internal_directory_url("siteB") == "file:///internal/b/run0001"
        assert builder.internal_directory_url("siteB", "/home/run") == "file:///home/run"

    def test_unknown_site(self):
        with pytest.raises(MissingSiteError, match="mars"):
            _builder().staging_url("mars", "f")

    def test_missing_write_server(self):
        readonly = make_scratch_site("ro", "http://ro.example.org", "/ro", operation=Operation.GET)
        with pytest.raises(MissingFileServerError, match="For job \\(J\\).*put.*ro"):
            _builder(None, readonly).staging_url("ro", "f", Operation.PUT, "J")

    def test_source_urls_in_preference_order(self):
        site = SiteEntry(name="multi", directories=[Directory(
            type=DirectoryType.SHARED_SCRATCH,
            file_servers=[
                FileServer(url_prefix="gsiftp://all", mount_point="/s", operation=Operation.ALL),
                FileServer(url_prefix="http://get", mount_point="/s", operation=Operation.GET),
            ],
        )])
        assert _builder(None, site).scratch_source_urls("multi", "f") == [
            "http://get/s/run0001/f",
            "gsiftp://all/s/run0001/f",
        ]


class TestOutputLocators:
    def test_destinations_and_registration(self):
        builder = _builder()
        directory = builder.storage_directory("out")
        assert builder.output_destinations(directory, "out", "x/f", "gsiftp://a/run/f") == [
            SiteURL("out", "gsiftp://out.example.org/storage/x/f"),
        ]
        assert builder.registration_url(directory, "out", "x/f") == "http://out.example.org/storage/x/f"

    def test_match_collapses_destinations(self):
        builder = _builder()
        directory = builder.storage_directory("out")
        staged = "GSIFTP://OUT.EXAMPLE.ORG/storage/f"
        assert builder.output_destinations(directory, "out", "f", staged) is None

    def test_site_without_storage(self):
        with pytest.raises(MissingFileServerError, match="No storage directory"):
            _builder().storage_directory("siteA")


class TestRunTransferOnLocalSite:
    def test_submit_site_always_local(self):
        refiner = MockTransferRefiner(preference="remote")
        assert _builder(refiner).run_transfer_on_local_site("local", "file:///x", TransferJobType.STAGE_IN)

    def test_refiner_preference_wins(self):
        builder = _builder(MockTransferRefiner(preference="local"))
        assert builder.run_transfer_on_local_site("siteA", "file:///x", TransferJobType.STAGE_IN)
        builder = _builder(MockTransferRefiner(preference="remote"))
        assert not builder.run_transfer_on_local_site("siteA", "gsiftp://x", TransferJobType.STAGE_IN)

    def test_remote_site_configured(self):
        refiner = MockTransferRefiner(remote_sites={TransferJobType.STAGE_OUT: {"siteA"}})
        builder = _builder(refiner)
        assert not builder.run_transfer_on_local_site("siteA", "gsiftp://x", TransferJobType.STAGE_OUT)
        assert builder.run_transfer_on_local_site("siteA", "gsiftp://x", TransferJobType.STAGE_IN)

    def test_file_destination_runs_remotely(self):
        builder = _builder()
        assert not builder.run_transfer_on_local_site("siteA", "file:///x", TransferJobType.STAGE_IN)
        assert builder.run_transfer_on_local_site("siteA", "gsiftp://x", TransferJobType.STAGE_IN)


def test_local_replica_uses_srm_map():
    builder = _builder(None, srm_map={"siteA": SRMMapping("srm://se?SFN=/mnt", "/mnt")})
    entry = ReplicaEntry(pfn="srm://se?SFN=/mnt/store/f", site="siteA")
    assert builder.local_replica(entry).pfn == "file:///mnt/store/f"
