from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..intermediate_representation.ir import BasicBlock, Category

# Operands of these categories never count as reads. Store and alloca only
# touch memory slots, and branch/compare operands are left out as well, so
# a variable that is only compared or branched on is not reported live.
USE_EXCLUDED_CATEGORIES = frozenset(
    {Category.ALLOCATION, Category.STORE, Category.BRANCH, Category.COMPARISON}
)


def contributes_use(category: Category) -> bool:
    """Whether operands of an instruction in ``category`` are tracked as uses."""
    return category not in USE_EXCLUDED_CATEGORIES


@dataclass(frozen=True)
class UseKill:
    """Local liveness facts of one block."""

    use: frozenset[str]
    kill: frozenset[str]


def extract_use_kill(block: BasicBlock) -> UseKill:
    """Scan a block once, in program order, and collect its USE and KILL sets.

    An operand counts as a use only if no earlier instruction of the block
    killed the same name. Store operands are killed from that point on, and
    every named result is killed once the instruction's operands are done.
    """
    use: set[str] = set()
    kill: set[str] = set()
    for instr in block:
        category = instr.category
        for name in instr.named_operands():
            if name in kill:
                continue
            if contributes_use(category):
                use.add(name)
            if category is Category.STORE:
                kill.add(name)
        if instr.result is not None:
            kill.add(instr.result)
    return UseKill(use=frozenset(use), kill=frozenset(kill))


def compute_use_kill(blocks: Iterable[BasicBlock]) -> dict[str, UseKill]:
    return {block.name: extract_use_kill(block) for block in blocks}
