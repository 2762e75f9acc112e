import json

import pytest

from stageplan.core.graph import WorkflowGraph, load_workflow, workflow_from_dict
from stageplan.core.jobs import Job
from stageplan.models.enums import JobKind, TransferMode

from .conftest import make_graph, make_job


class TestWorkflowGraph:
    def test_walk_visits_parents_first(self):
        jobs = [make_job(n, "siteA") for n in ("D", "C", "B", "A")]
        graph = make_graph(jobs, [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")])
        order = [(job.name, depth) for job, depth in graph.walk()]
        assert order == [("A", 0), ("C", 1), ("B", 1), ("D", 2)]
        assert graph.max_depth() == 2

    def test_depth_is_longest_chain(self):
        jobs = [make_job(n, "siteA") for n in ("A", "B", "C")]
        graph = make_graph(jobs, [("A", "B"), ("B", "C"), ("A", "C")])
        assert dict((j.name, d) for j, d in graph.walk()) == {"A": 0, "B": 1, "C": 2}

    def test_parents_in_insertion_order(self):
        jobs = [make_job(n, "siteA") for n in ("P2", "P1", "C")]
        graph = make_graph(jobs, [("P1", "C"), ("P2", "C")])
        assert [p.name for p in graph.parents(graph.job("C"))] == ["P2", "P1"]
        assert graph.edge_count == 2
        assert len(graph) == 3
        assert "C" in graph

    def test_duplicate_job_rejected(self):
        graph = WorkflowGraph()
        graph.add_job(Job(name="A", site="siteA"))
        with pytest.raises(ValueError, match="Duplicate"):
            graph.add_job(Job(name="A", site="siteB"))

    def test_edge_to_unknown_job_rejected(self):
        graph = make_graph([make_job("A", "siteA")])
        with pytest.raises(ValueError, match="Unknown job B"):
            graph.add_dependency("A", "B")

    def test_cycle_detected_on_walk(self):
        graph = make_graph(
            [make_job("A", "siteA"), make_job("B", "siteA")], [("A", "B"), ("B", "A")],
        )
        with pytest.raises(ValueError, match="cycle"):
            list(graph.walk())

    def test_empty_graph(self):
        graph = WorkflowGraph()
        assert list(graph.walk()) == []
        assert graph.max_depth() == -1


class TestLoadWorkflow:
    def _data(self):
        return {
            "jobs": [
                {"name": "gen", "site": "siteA", "outputs": [{"lfn": "a.root", "size": 10}]},
                {
                    "name": "ana", "site": "siteB",
                    "inputs": ["a.root", {"lfn": "cfg.json", "optional": True}],
                    "outputs": [{"lfn": "tmp", "transfer": "never", "register": False}],
                },
                {
                    "name": "sub", "site": "siteA", "kind": "nested_planned",
                    "subworkflow_lfn": "sub.dag", "inputs": ["sub.dag"],
                },
            ],
            "edges": [["gen", "ana"]],
            "deleted_jobs": [{"name": "old", "site": "siteA", "outputs": ["old.root"]}],
        }

    def test_from_dict(self):
        graph, deleted = workflow_from_dict(self._data())
        assert len(graph) == 3
        ana = graph.job("ana")
        assert [pf.lfn for pf in ana.input_files] == ["a.root", "cfg.json"]
        assert ana.input_files[1].optional is True
        tmp = ana.output_files[0]
        assert tmp.transfer_mode == TransferMode.NEVER
        assert tmp.transient_registration
        assert graph.job("gen").output_files[0].size == 10
        assert graph.job("sub").kind == JobKind.NESTED_PLANNED
        assert [j.name for j in deleted] == ["old"]

    def test_load_from_file(self, tmp_path):
        path = tmp_path / "wf.json"
        path.write_text(json.dumps(self._data()))
        graph, deleted = load_workflow(str(path))
        assert [p.name for p in graph.parents(graph.job("ana"))] == ["gen"]
        assert len(deleted) == 1
