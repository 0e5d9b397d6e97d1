# dag.py
from __future__ import annotations

import heapq
from collections import deque
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .errors import ConfigurationError, CyclicDependencyError
from .model import Target
from .registry import TargetRegistry


def closure(registry: TargetRegistry, requested: Iterable[str]) -> Set[str]:
    """Requested names plus everything they transitively depend on."""
    seen: Set[str] = set()
    q = deque()
    for name in requested:
        registry.get(name)  # raises UnknownTargetError
        q.append(name)

    while q:
        name = q.popleft()
        if name in seen:
            continue
        seen.add(name)
        for dep in registry.get(name).depends_on:
            if dep not in seen:
                q.append(dep)
    return seen


def build_graph(
    registry: TargetRegistry, names: Set[str]
) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Build the induced subgraph over `names`.

    Edge a -> b means a must run before b. Hard edges come from depends_on;
    soft edges from before/after are only added when both ends are present.
    """
    adj: Dict[str, Set[str]] = {n: set() for n in names}
    indeg: Dict[str, int] = {n: 0 for n in names}

    def add_edge(src: str, dst: str) -> None:
        if dst not in adj[src]:
            adj[src].add(dst)
            indeg[dst] += 1

    for name in names:
        t = registry.get(name)
        for dep in t.depends_on:
            add_edge(dep, name)
        for other in t.before:
            if other in names:
                add_edge(name, other)
        for other in t.after:
            if other in names:
                add_edge(other, name)

    return adj, indeg


def find_cycle(adj: Dict[str, Set[str]], candidates: Iterable[str]) -> List[str]:
    """Return one cycle among `candidates` as [a, b, ..., a]."""
    candidates = set(candidates)
    visiting: List[str] = []
    on_path: Set[str] = set()
    done: Set[str] = set()

    def visit(node: str) -> Optional[List[str]]:
        visiting.append(node)
        on_path.add(node)
        for nxt in sorted(adj.get(node, ())):
            if nxt not in candidates or nxt in done:
                continue
            if nxt in on_path:
                start = visiting.index(nxt)
                return visiting[start:] + [nxt]
            found = visit(nxt)
            if found:
                return found
        visiting.pop()
        on_path.discard(node)
        done.add(node)
        return None

    for node in sorted(candidates):
        if node not in done:
            found = visit(node)
            if found:
                return found
    return sorted(candidates)


def topo_order(
    adj: Dict[str, Set[str]], indeg: Dict[str, int], rank: Dict[str, int]
) -> List[str]:
    """
    Kahn's algorithm. Among ready nodes the lowest rank (declaration order)
    goes first so identical registrations always give identical plans.
    """
    indeg = dict(indeg)  # copy (we mutate it)
    ready = [(rank[n], n) for n, d in indeg.items() if d == 0]
    heapq.heapify(ready)

    order: List[str] = []
    while ready:
        _, node = heapq.heappop(ready)
        order.append(node)
        for child in adj[node]:
            indeg[child] -= 1
            if indeg[child] == 0:
                heapq.heappush(ready, (rank[child], child))

    if len(order) != len(indeg):
        stuck = [n for n, d in indeg.items() if d > 0]
        raise CyclicDependencyError(find_cycle(adj, stuck))

    return order


def plan(registry: TargetRegistry, requested: Iterable[str]) -> List[Target]:
    """
    Compute the execution plan for a run request.

    Raises UnknownTargetError / CyclicDependencyError before anything runs.
    """
    requested = list(requested)
    if not requested:
        raise ConfigurationError("No targets requested and no default target declared")

    registry.freeze()
    names = closure(registry, requested)
    adj, indeg = build_graph(registry, names)
    rank = {n: registry.index(n) for n in names}
    return [registry.get(n) for n in topo_order(adj, indeg, rank)]
