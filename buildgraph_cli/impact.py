"""Impact analysis: changed units plus everything that transitively depends on them."""

from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Mapping, Set


def reverse_edges(graph: Mapping[str, Iterable[str]]) -> Dict[str, Set[str]]:
    """Invert ``unit -> references`` into ``unit -> dependents``."""
    reverse: Dict[str, Set[str]] = {}
    for src, refs in graph.items():
        for dst in refs:
            reverse.setdefault(dst, set()).add(src)
    return reverse


def compute_impacted(
    changed: Iterable[str],
    graph: Mapping[str, Iterable[str]],
) -> Set[str]:
    """Breadth-first closure of dependents over *graph*.

    Each unit enters the queue at most once, so cycles terminate and the
    result does not depend on visiting order.
    """
    dependents = reverse_edges(graph)
    impacted: Set[str] = set(changed)
    queue = deque(sorted(impacted))

    while queue:
        current = queue.popleft()
        for dependent in sorted(dependents.get(current, ())):
            if dependent not in impacted:
                impacted.add(dependent)
                queue.append(dependent)
    return impacted


def dependents_of(unit_id: str, graph: Mapping[str, Iterable[str]]) -> List[str]:
    """Direct dependents of *unit_id*."""
    return sorted(src for src, refs in graph.items() if unit_id in refs)


def impact_tree(
    root: str,
    graph: Mapping[str, Iterable[str]],
    depth: int = 3,
) -> str:
    """ASCII sketch of who is rebuilt when *root* changes."""
    dependents = reverse_edges(graph)
    lines = [root]
    queue = deque([(root, 0)])
    seen = {root}

    while queue:
        current, level = queue.popleft()
        if level >= depth:
            continue
        for dependent in sorted(dependents.get(current, ())):
            lines.append(f"{'  ' * (level + 1)}|- {dependent}")
            if dependent not in seen:
                seen.add(dependent)
                queue.append((dependent, level + 1))
    return "\n".join(lines)
