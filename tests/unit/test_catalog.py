import json

from stageplan.adapters.catalog import InMemoryReplicaCatalog, prefetch_replicas
from stageplan.adapters.mock import MockRucioAdapter


class TestInMemoryCatalog:
    def test_insert_and_lookup(self):
        catalog = InMemoryReplicaCatalog()
        catalog.insert("f", "gsiftp://a/f", "siteA")
        catalog.insert("f", "gsiftp://b/f", "siteB", {"rse": "T2_B"})
        location = catalog.lookup("f")
        assert location.pfns == ["gsiftp://a/f", "gsiftp://b/f"]
        assert location.entries[1].attributes == {"rse": "T2_B"}
        assert catalog.lookup("g") is None

    def test_empty_entry_list_is_unknown(self):
        catalog = InMemoryReplicaCatalog({"f": []})
        assert catalog.lookup("f") is None

    def test_from_file(self, tmp_path):
        path = tmp_path / "rc.json"
        path.write_text(json.dumps({"f": [{"pfn": "gsiftp://a/f", "site": "siteA"}]}))
        catalog = InMemoryReplicaCatalog.from_file(str(path))
        assert len(catalog) == 1
        assert catalog.lookup("f").entries[0].site == "siteA"


async def test_prefetch_replicas():
    adapter = MockRucioAdapter({"a.root": [{"pfn": "root://a/a.root", "site": "T2_A"}]})
    catalog = await prefetch_replicas(adapter, ["b.root", "a.root", "a.root"])
    assert adapter.calls == [("get_replicas", (["a.root", "b.root"],), {})]
    assert catalog.lookup("a.root").pfns == ["root://a/a.root"]
    assert catalog.lookup("b.root") is None


async def test_prefetch_nothing():
    adapter = MockRucioAdapter()
    catalog = await prefetch_replicas(adapter, [])
    assert len(catalog) == 0
    assert adapter.calls == []
