"""Tests for impact analysis."""

import itertools

from buildgraph_cli.impact import compute_impacted, dependents_of, impact_tree, reverse_edges


def test_empty_changed_set():
    assert compute_impacted(set(), {"A": set(), "B": {"A"}}) == set()


def test_direct_dependent():
    graph = {"A": set(), "B": {"A"}}
    assert compute_impacted({"A"}, graph) == {"A", "B"}


def test_dependency_is_not_impacted():
    graph = {"A": set(), "B": {"A"}}
    assert compute_impacted({"B"}, graph) == {"B"}


def test_transitive_chain():
    graph = {"A": set(), "B": {"A"}, "C": {"B"}, "D": set()}
    assert compute_impacted({"A"}, graph) == {"A", "B", "C"}


def test_mutual_cycle():
    graph = {"A": {"B"}, "B": {"A"}}
    assert compute_impacted({"A"}, graph) == {"A", "B"}


def test_self_loop_and_longer_cycle_terminate():
    graph = {"A": {"A", "C"}, "B": {"A"}, "C": {"B"}, "D": {"C"}}
    assert compute_impacted({"B"}, graph) == {"A", "B", "C", "D"}


def test_diamond_reached_once():
    graph = {"A": set(), "B": {"A"}, "C": {"A"}, "D": {"B", "C"}}
    assert compute_impacted({"A"}, graph) == {"A", "B", "C", "D"}


def test_changed_unit_outside_graph_still_reported():
    assert compute_impacted({"X"}, {"A": set()}) == {"X"}


def test_result_independent_of_order():
    graph = {"A": {"C"}, "B": {"A"}, "C": {"B"}, "D": {"A"}, "E": set()}
    expected = compute_impacted({"A", "E"}, graph)
    for order in itertools.permutations(graph):
        reordered = {key: graph[key] for key in order}
        assert compute_impacted(["E", "A"], reordered) == expected


def test_reverse_edges_and_dependents():
    graph = {"A": set(), "B": {"A"}, "C": {"A", "B"}}
    assert reverse_edges(graph) == {"A": {"B", "C"}, "B": {"C"}}
    assert dependents_of("A", graph) == ["B", "C"]
    assert dependents_of("C", graph) == []


def test_impact_tree():
    graph = {"A": set(), "B": {"A"}, "C": {"B"}}
    text = impact_tree("A", graph)
    assert text.splitlines() == ["A", "  |- B", "    |- C"]
