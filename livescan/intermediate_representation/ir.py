from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator


class Category(Enum):
    """Coarse instruction categories the liveness analysis distinguishes."""

    ALLOCATION = "alloca"
    STORE = "store"
    BRANCH = "br"
    COMPARISON = "icmp"
    OTHER = "other"


_CATEGORY_BY_OPCODE = {
    category.value: category for category in Category if category is not Category.OTHER
}

TERMINATOR_OPCODES = frozenset(
    {
        "br",
        "switch",
        "ret",
        "unreachable",
        "resume",
        "indirectbr",
        "invoke",
        "callbr",
        "catchswitch",
        "catchret",
        "cleanupret",
    }
)


def _normalize_name(name: str | None) -> str | None:
    # Unnamed values surface as "" in LLVM; keep them out of every name set.
    return name or None


@dataclass(frozen=True)
class Instruction:
    """
    A single IR instruction.

    Only what the dataflow analyses need is kept: the opcode mnemonic, the
    ordered operand names (``None`` for constants and unnamed values), the
    optional result name, and for terminators the names of the successor
    blocks.
    """

    opcode: str
    operands: tuple[str | None, ...] = field(default_factory=tuple)
    result: str | None = None
    targets: tuple[str, ...] = field(default_factory=tuple)

    # Source metadata (optional; used by reporting and error messages)
    text: str = ""
    line: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "operands", tuple(_normalize_name(op) for op in self.operands)
        )
        object.__setattr__(self, "result", _normalize_name(self.result))
        object.__setattr__(self, "targets", tuple(self.targets))

    @property
    def category(self) -> Category:
        return _CATEGORY_BY_OPCODE.get(self.opcode, Category.OTHER)

    @property
    def is_terminator(self) -> bool:
        return self.opcode in TERMINATOR_OPCODES

    def named_operands(self) -> Iterator[str]:
        """Yield operand names in order, skipping unnamed operands."""
        return (name for name in self.operands if name is not None)


@dataclass(frozen=True)
class BasicBlock:
    """Straight-line instruction sequence ending in a terminator."""

    name: str
    instructions: tuple[Instruction, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "instructions", tuple(self.instructions))

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    @property
    def terminator(self) -> Instruction | None:
        return self.instructions[-1] if self.instructions else None

    @property
    def successor_names(self) -> tuple[str, ...]:
        terminator = self.terminator
        if terminator is None or not terminator.is_terminator:
            return ()
        return terminator.targets


@dataclass(frozen=True)
class Function:
    """A program unit: ordered basic blocks. Declarations have no blocks."""

    name: str
    blocks: tuple[BasicBlock, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "blocks", tuple(self.blocks))

    def __iter__(self) -> Iterator[BasicBlock]:
        return iter(self.blocks)

    @property
    def is_declaration(self) -> bool:
        return not self.blocks

    def variables(self) -> set[str]:
        """Collect every variable name mentioned by the function body."""
        variables: set[str] = set()
        for block in self.blocks:
            for instr in block:
                variables.update(instr.named_operands())
                if instr.result is not None:
                    variables.add(instr.result)
        return variables


@dataclass(frozen=True)
class Module:
    """Container for the functions of one translation unit."""

    functions: tuple[Function, ...] = field(default_factory=tuple)
    source: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "functions", tuple(self.functions))

    def __iter__(self) -> Iterator[Function]:
        return iter(self.functions)

    def definitions(self) -> Iterable[Function]:
        return (func for func in self.functions if not func.is_declaration)

    def by_name(self) -> dict[str, Function]:
        """Quick lookup map from function name to function."""
        return {func.name: func for func in self.functions}
