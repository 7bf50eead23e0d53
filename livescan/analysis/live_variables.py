from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from ..intermediate_representation.cfg import CFG, build_cfg
from ..intermediate_representation.ir import Module
from .solver import solve_worklist
from .use_kill import UseKill, compute_use_kill

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LivenessResult:
    """Live-out sets of one function, keyed by block name."""

    function: str
    blocks: tuple[str, ...]
    successors: dict[str, tuple[str, ...]]
    local: dict[str, UseKill]
    live_out: dict[str, frozenset[str]]
    visits: int = 0

    def __getitem__(self, block: str) -> frozenset[str]:
        return self.live_out[block]


def compute_live_variables(
    cfg: CFG,
    observer: Optional[Callable[[str, frozenset[str], frozenset[str]], None]] = None,
) -> LivenessResult:
    """Backward liveness over a validated CFG.

    LIVE_OUT[B] is the union over every successor S of
    USE[S] | (LIVE_OUT[S] - KILL[S]); blocks without successors keep the
    empty set. ``observer`` receives ``(block name, before, after)`` each
    time a block's live-out set changes.
    """
    names = {node_id: node.name for node_id, node in cfg.nodes.items()}
    local = compute_use_kill(node.block for node in cfg)
    local_by_id = {node_id: local[name] for node_id, name in names.items()}

    def transfer(node_id, live_out):
        facts = local_by_id[node_id]
        return facts.use | (live_out - facts.kill)

    notify = None
    if observer is not None:
        def notify(node_id, before, after):
            observer(names[node_id], before, after)

    solved = solve_worklist(
        cfg.nodes,
        cfg.predecessors,
        cfg.successors,
        "backward",
        transfer,
        observer=notify,
    )
    logger.debug(
        "liveness for %s: %d blocks, %d visits", cfg.name, len(cfg), solved.visits
    )

    return LivenessResult(
        function=cfg.name,
        blocks=tuple(names.values()),
        successors={
            names[node_id]: tuple(names[s] for s in node.successors)
            for node_id, node in cfg.nodes.items()
        },
        local=local,
        live_out={names[node_id]: facts for node_id, facts in solved.facts.items()},
        visits=solved.visits,
    )


def analyze_module(module: Module, functions: Optional[list[str]] = None) -> list[LivenessResult]:
    """Run liveness for each defined function, optionally restricted by name.

    Names in ``functions`` that have no definition in the module raise
    ``ValueError``; results follow the order of ``functions`` when given,
    module order otherwise.
    """
    defined = {func.name: func for func in module.definitions()}
    if functions:
        missing = [name for name in functions if name not in defined]
        if missing:
            raise ValueError(f"no definition for function(s): {', '.join(missing)}")
        selected = [defined[name] for name in functions]
    else:
        selected = list(defined.values())
    logger.debug("analyzing %d function(s)", len(selected))
    return [compute_live_variables(build_cfg(function)) for function in selected]
