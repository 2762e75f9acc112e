"""Workflow graph: jobs plus parent/child edges, walked parents-first."""

from __future__ import annotations

import json
from typing import Iterator

import networkx as nx

from stageplan.core.jobs import Job


class WorkflowGraph:
    """Wraps a NetworkX DiGraph keyed by job name.

    Iteration order is topological by generation: every node's depth is the
    length of the longest parent chain above it (roots are depth 0), and
    nodes of one depth are yielded in insertion order.
    """

    def __init__(self) -> None:
        self._graph: nx.DiGraph = nx.DiGraph()
        self._order: dict[str, int] = {}

    def add_job(self, job: Job) -> None:
        if job.name in self._graph:
            raise ValueError(f"Duplicate job {job.name}")
        self._order[job.name] = len(self._order)
        self._graph.add_node(job.name, job=job)

    def add_dependency(self, parent: str, child: str) -> None:
        for name in (parent, child):
            if name not in self._graph:
                raise ValueError(f"Unknown job {name} in edge {parent} -> {child}")
        self._graph.add_edge(parent, child)

    def job(self, name: str) -> Job:
        return self._graph.nodes[name]["job"]

    def jobs(self) -> list[Job]:
        return [self.job(n) for n in self._order]

    def parents(self, job: Job) -> list[Job]:
        names = sorted(self._graph.predecessors(job.name), key=self._order.__getitem__)
        return [self.job(n) for n in names]

    def __len__(self) -> int:
        return self._graph.number_of_nodes()

    def __contains__(self, name: str) -> bool:
        return name in self._graph

    def _generations(self) -> list[list[str]]:
        try:
            generations = list(nx.topological_generations(self._graph))
        except nx.NetworkXUnfeasible as exc:
            raise ValueError("Workflow graph contains a cycle") from exc
        return [sorted(g, key=self._order.__getitem__) for g in generations]

    def walk(self) -> Iterator[tuple[Job, int]]:
        """Yield ``(job, depth)`` with every parent before its children."""
        for depth, generation in enumerate(self._generations()):
            for name in generation:
                yield self.job(name), depth

    def max_depth(self) -> int:
        return len(self._generations()) - 1

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()


def load_workflow(path: str) -> tuple[WorkflowGraph, list[Job]]:
    """Load a reduced workflow and the jobs removed by reduction from JSON.

    Format::

        {"jobs": [{"name": ..., "site": ..., "inputs": [...], "outputs": [...]}],
         "edges": [["parent", "child"], ...],
         "deleted_jobs": [...]}
    """
    with open(path) as f:
        data = json.load(f)
    return workflow_from_dict(data)


def workflow_from_dict(data: dict) -> tuple[WorkflowGraph, list[Job]]:
    graph = WorkflowGraph()
    for raw in data.get("jobs", []):
        graph.add_job(Job.from_dict(raw))
    for parent, child in data.get("edges", []):
        graph.add_dependency(parent, child)
    deleted = [Job.from_dict(raw) for raw in data.get("deleted_jobs", [])]
    return graph, deleted
