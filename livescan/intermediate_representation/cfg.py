from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .ir import BasicBlock, Function


class StructuralError(ValueError):
    """Raised when a function body cannot form a well-defined CFG."""

    def __init__(self, function: str, message: str):
        super().__init__(f"{function}: {message}")
        self.function = function


@dataclass
class CFGNode:
    """CFG node wrapping a basic block."""

    block: BasicBlock
    successors: list[int] = field(default_factory=list)
    predecessors: list[int] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.block.name


@dataclass
class CFG:
    """Control-flow graph container, nodes keyed by block position."""

    name: str
    nodes: dict[int, CFGNode]
    entry: int | None

    def __iter__(self) -> Iterable[CFGNode]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def exits(self) -> list[int]:
        return [node_id for node_id, node in self.nodes.items() if not node.successors]

    def node_id(self, block_name: str) -> int:
        for node_id, node in self.nodes.items():
            if node.name == block_name:
                return node_id
        raise KeyError(block_name)

    def successors(self, node_id: int) -> list[int]:
        return self.nodes[node_id].successors

    def predecessors(self, node_id: int) -> list[int]:
        return self.nodes[node_id].predecessors

    def add_edge(self, source: int, target: int) -> None:
        if source not in self.nodes or target not in self.nodes:
            raise KeyError("CFG edge endpoints must exist in nodes.")
        src_node = self.nodes[source]
        tgt_node = self.nodes[target]
        if target not in src_node.successors:
            src_node.successors.append(target)
        if source not in tgt_node.predecessors:
            tgt_node.predecessors.append(source)


def validate_function(function: Function) -> dict[str, int]:
    """Check block structure and return the block name to node id map."""
    ids: dict[str, int] = {}
    for idx, block in enumerate(function.blocks):
        if block.name in ids:
            raise StructuralError(function.name, f"duplicate block name {block.name!r}")
        ids[block.name] = idx

    for block in function.blocks:
        if not block.instructions:
            raise StructuralError(function.name, f"block {block.name!r} is empty")
        *body, last = block.instructions
        if not last.is_terminator:
            raise StructuralError(
                function.name,
                f"block {block.name!r} does not end with a terminator "
                f"(last instruction is {last.opcode!r})",
            )
        for instr in body:
            if instr.is_terminator:
                raise StructuralError(
                    function.name,
                    f"terminator {instr.opcode!r} in the middle of block {block.name!r}",
                )
        for target in last.targets:
            if target not in ids:
                raise StructuralError(
                    function.name,
                    f"block {block.name!r} branches to unknown block {target!r}",
                )
    return ids


def build_cfg(function: Function) -> CFG:
    """Build the CFG of a function from its block terminators.

    The function is validated first, so the analyses never see a block
    without a terminator or an edge to a block that does not exist.
    """
    ids = validate_function(function)
    nodes = {idx: CFGNode(block=block) for idx, block in enumerate(function.blocks)}
    cfg = CFG(name=function.name, nodes=nodes, entry=0 if nodes else None)
    for idx, block in enumerate(function.blocks):
        for target in block.successor_names:
            cfg.add_edge(idx, ids[target])
    return cfg
