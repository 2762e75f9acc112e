import json

from stageplan.models.enums import DirectoryType, Operation
from stageplan.models.site import Directory, FileServer, load_site_store

from .conftest import make_site_store


def test_operation_preference_order():
    assert Operation.for_get() == (Operation.GET, Operation.ALL)
    assert Operation.for_put() == (Operation.PUT, Operation.ALL)


class TestDirectory:
    def _directory(self, *servers):
        return Directory(type=DirectoryType.SHARED_STORAGE, file_servers=list(servers))

    def test_exact_operation_preferred(self):
        d = self._directory(
            FileServer(url_prefix="gsiftp://all", operation=Operation.ALL),
            FileServer(url_prefix="gsiftp://put", operation=Operation.PUT),
        )
        assert d.select_file_server(Operation.PUT).url_prefix == "gsiftp://put"

    def test_falls_back_to_all(self):
        d = self._directory(FileServer(url_prefix="gsiftp://all", operation=Operation.ALL))
        assert d.select_file_server(Operation.GET).url_prefix == "gsiftp://all"
        assert d.has_server_for_get()
        assert d.has_server_for_put()

    def test_no_server(self):
        d = self._directory(FileServer(url_prefix="http://get", operation=Operation.GET))
        assert d.select_file_server(Operation.PUT) is None
        assert not d.has_server_for_put()


class TestSiteStore:
    def test_work_directories(self):
        store = make_site_store()
        server = store.lookup("siteA").select_scratch_server(Operation.PUT)
        assert store.external_work_directory(server) == "/scratch/a/run0001"
        assert store.internal_work_directory("siteA") == "/internal/a/run0001"
        assert store.internal_work_directory("siteA", "/home/run") == "/home/run"
        assert store.internal_work_directory("unknown") is None

    def test_no_relative_work_dir(self):
        store = make_site_store(relative_work_dir="")
        server = store.lookup("siteA").select_scratch_server(Operation.PUT)
        assert store.external_work_directory(server) == "/scratch/a"

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "sites.json"
        path.write_text(json.dumps({"sites": [{
            "name": "siteA",
            "directories": [{
                "type": "shared_scratch",
                "internal_mount_point": "/scratch",
                "file_servers": [{"url_prefix": "gsiftp://a", "mount_point": "/scratch", "operation": "all"}],
            }],
        }]}))
        store = load_site_store(str(path), relative_work_dir="run7")
        assert store.lookup("siteA").scratch_directory.file_servers[0].url == "gsiftp://a/scratch"
        assert store.lookup("siteA").storage_directory is None
        assert store.relative_work_dir == "run7"

    def test_load_bare_list(self, tmp_path):
        path = tmp_path / "sites.json"
        path.write_text(json.dumps([{"name": "siteB"}]))
        assert list(load_site_store(str(path)).sites) == ["siteB"]
