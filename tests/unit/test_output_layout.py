import pytest
from hypothesis import given
from hypothesis import strategies as st

from stageplan.core.errors import LayoutError
from stageplan.core.output_layout import FlatLayout, HashedLayout, create_layout


class TestFlatLayout:
    def test_every_file_under_root(self):
        layout = FlatLayout("/run0001/")
        assert [layout.allocate(f"f{i}") for i in range(3)] == [
            "run0001/f0", "run0001/f1", "run0001/f2",
        ]
        assert layout.allocated == 3

    def test_empty_root(self):
        assert FlatLayout().allocate("f") == "f"


class TestHashedLayout:
    def test_small_run_uses_one_level(self):
        layout = HashedLayout("out", total_files=3, fanout=4)
        assert layout.levels == 1
        assert [layout.allocate(f"f{i}") for i in range(3)] == ["out/0/f0", "out/0/f1", "out/0/f2"]

    def test_directory_names_are_zero_padded(self):
        layout = HashedLayout("", total_files=200, fanout=16)
        assert layout.directory_for(0) == "00"
        assert layout.directory_for(16 * 11) == "11"

    def test_deeper_tree_for_large_runs(self):
        layout = HashedLayout("", total_files=100, fanout=4)
        assert layout.levels == 3
        assert layout.capacity >= 100
        assert layout.directory_for(99) == "1/2/0"

    def test_exhausted_layout_raises(self):
        layout = HashedLayout("", total_files=4, fanout=2)
        for i in range(layout.capacity):
            layout.allocate(f"f{i}")
        with pytest.raises(LayoutError, match="exhausted"):
            layout.allocate("one-too-many")

    def test_fanout_below_two_rejected(self):
        with pytest.raises(LayoutError):
            HashedLayout("", total_files=10, fanout=1)


@given(
    total=st.integers(min_value=0, max_value=3000),
    fanout=st.integers(min_value=2, max_value=20),
)
def test_no_directory_exceeds_fanout(total, fanout):
    layout = HashedLayout("", total_files=total, fanout=fanout)
    children: dict[str, set[str]] = {}
    for i in range(total):
        path = layout.allocate(f"f{i}")
        parts = path.split("/")
        for depth in range(len(parts)):
            parent = "/".join(parts[:depth])
            children.setdefault(parent, set()).add(parts[depth])
    assert all(len(names) <= fanout for names in children.values())


@given(st.lists(st.text(min_size=1, max_size=5), max_size=30))
def test_flat_layout_root_never_changes(lfns):
    layout = FlatLayout("store")
    for lfn in lfns:
        assert layout.allocate(lfn) == f"store/{lfn}"


def test_create_layout_picks_kind():
    assert isinstance(create_layout(False, "r", 10), FlatLayout)
    hashed = create_layout(True, "r", 10, fanout=4)
    assert isinstance(hashed, HashedLayout)
    assert hashed.description == "HashedLayout"
