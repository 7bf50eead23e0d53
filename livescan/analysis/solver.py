from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Hashable, Iterable, Optional

logger = logging.getLogger(__name__)

DIRECTIONS = ("forward", "backward")


@dataclass
class DataFlowResult:
    """Facts at the merge point of every node once the worklist drains.

    For a backward problem these are the OUT sets, for a forward problem
    the IN sets.
    """

    direction: str
    facts: dict[Hashable, frozenset[str]]
    visits: int = 0


TransferFn = Callable[[Hashable, frozenset[str]], frozenset[str]]
ObserverFn = Callable[[Hashable, frozenset[str], frozenset[str]], None]


def solve_worklist(
    nodes: Iterable[Hashable],
    predecessors: Callable[[Hashable], Iterable[Hashable]],
    successors: Callable[[Hashable], Iterable[Hashable]],
    direction: str,
    transfer: TransferFn,
    observer: Optional[ObserverFn] = None,
) -> DataFlowResult:
    """Union-merge worklist solver over finite sets of names.

    Every node starts at the empty set and the worklist is seeded with all
    nodes. A popped node's fact is the union of ``transfer(source,
    fact[source])`` over its sources (successors when ``direction`` is
    "backward", predecessors when "forward"). When the fact changes, the
    nodes reading it are queued again. ``observer`` is called with
    ``(node, before, after)`` on every change.
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")
    if direction == "backward":
        sources, dependents = successors, predecessors
    else:
        sources, dependents = predecessors, successors

    order = list(nodes)
    facts: dict[Hashable, frozenset[str]] = {node: frozenset() for node in order}
    worklist = deque(order)
    visits = 0

    while worklist:
        node = worklist.popleft()
        visits += 1
        merged: set[str] = set()
        for source in sources(node):
            merged |= transfer(source, facts[source])
        updated = frozenset(merged)
        previous = facts[node]
        facts[node] = updated
        if updated == previous:
            continue
        logger.debug("node %s changed: %s -> %s", node, sorted(previous), sorted(updated))
        if observer is not None:
            observer(node, previous, updated)
        worklist.extend(dependents(node))

    logger.debug("%s worklist converged after %d visits", direction, visits)
    return DataFlowResult(direction=direction, facts=facts, visits=visits)
