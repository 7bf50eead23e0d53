from __future__ import annotations

import logging
import re
from pathlib import Path

from ..intermediate_representation.ir import BasicBlock, Function, Instruction, Module

logger = logging.getLogger(__name__)

_NAME = r'(?:"(?:[^"\\]|\\.)*"|[-A-Za-z$._0-9]+)'

# A single value reference: %local, @global, quoted or numbered.
VALUE_RE = re.compile(r'^([%@])(?:"((?:[^"\\]|\\.)*)"|([-A-Za-z$._0-9]+))$')
LABEL_RE = re.compile(rf"^({_NAME}):$")
RESULT_RE = re.compile(rf"^(%{_NAME})\s*=\s*(.*)$")
DEFINE_RE = re.compile(rf"^define\b[^@]*@({_NAME})\s*\(")
DECLARE_RE = re.compile(rf"^declare\b[^@]*@({_NAME})\s*\(")
CALLEE_RE = re.compile(rf"([%@]{_NAME})\s*\(")
# Inline asm callee: the argument list follows the constraint string.
ASM_ARGS_RE = re.compile(r'\basm\b[^(]*"\s*\(')
PHI_INCOMING_RE = re.compile(rf"\[\s*([%@]{_NAME}|[^,\]]+?)\s*,\s*([^\]]+?)\s*\]")
SWITCH_CASE_RE = re.compile(rf"(\S+)\s*,\s*label\s+(%{_NAME})")
LABEL_REF_RE = re.compile(rf"label\s+(%{_NAME})")
VALUE_REF_RE = re.compile(rf"[%@]{_NAME}")
# Whitespace-separated token; quoted strings may contain spaces.
TOKEN_RE = re.compile(r'(?:[^\s"]|"(?:[^"\\]|\\.)*")+')

CALL_PREFIXES = {"tail", "musttail", "notail"}

# Memory ordering keywords trail the pointer operand of atomic accesses.
ATOMIC_ORDERINGS = {"unordered", "monotonic", "acquire", "release", "acq_rel", "seq_cst"}

EH_TERMINATORS = {"catchswitch", "catchret", "cleanupret"}

CAST_OPCODES = {
    "trunc",
    "zext",
    "sext",
    "fptrunc",
    "fpext",
    "fptoui",
    "fptosi",
    "uitofp",
    "sitofp",
    "ptrtoint",
    "inttoptr",
    "bitcast",
    "addrspacecast",
}

# Opcodes whose first comma-separated piece is a type, not a value.
LEADING_TYPE_OPCODES = {"alloca", "load", "getelementptr", "va_arg"}

_OPEN = "([{<"
_CLOSE = ")]}>"


class IRParseError(ValueError):
    """Raised for IR text the parser cannot make sense of."""

    def __init__(self, message: str, line: int | None = None):
        location = f"line {line}: " if line is not None else ""
        super().__init__(f"{location}{message}")
        self.line = line


def _strip_comment(line: str) -> str:
    """Drop a trailing ``;`` comment that is not inside a quoted string."""
    in_double = False
    escape = False
    for idx, ch in enumerate(line):
        if escape:
            escape = False
            continue
        if ch == "\\" and in_double:
            escape = True
            continue
        if ch == '"':
            in_double = not in_double
            continue
        if ch == ";" and not in_double:
            return line[:idx].rstrip()
    return line.rstrip()


def _bracket_balance(text: str) -> int:
    balance = 0
    in_double = False
    for ch in text:
        if ch == '"':
            in_double = not in_double
        elif not in_double and ch == "[":
            balance += 1
        elif not in_double and ch == "]":
            balance -= 1
    return balance


def _split_top_level(text: str, sep: str = ",") -> list[str]:
    """Split text on a separator outside of brackets and strings."""
    parts: list[str] = []
    buf: list[str] = []
    depth = 0
    in_double = False
    for ch in text:
        if ch == '"':
            in_double = not in_double
        elif not in_double and ch in _OPEN:
            depth += 1
        elif not in_double and ch in _CLOSE:
            depth = max(depth - 1, 0)
        elif ch == sep and depth == 0 and not in_double:
            part = "".join(buf).strip()
            if part:
                parts.append(part)
            buf = []
            continue
        buf.append(ch)
    part = "".join(buf).strip()
    if part:
        parts.append(part)
    return parts


def _find_matching_paren(text: str, start: int) -> int | None:
    """Return the index of the parenthesis closing the one at ``start``."""
    depth = 0
    in_double = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if ch == '"':
            in_double = not in_double
            continue
        if in_double:
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return idx
    return None


def _unquote(name: str) -> str:
    if len(name) >= 2 and name[0] == name[-1] == '"':
        return name[1:-1]
    return name


def resolve_value(token: str) -> str | None:
    """Map a value token to its name.

    Numbered values (``%0``), constants and anything that is not a plain
    ``%``/``@`` reference have no name and resolve to ``None``.
    """
    match = VALUE_RE.match(token.strip())
    if match is None:
        return None
    quoted, plain = match.group(2), match.group(3)
    if quoted is not None:
        return quoted or None
    if plain.isdigit():
        return None
    return plain


def _label_target(token: str, line: int) -> str:
    token = token.strip()
    if not token.startswith("%"):
        raise IRParseError(f"expected a label reference, got {token!r}", line)
    return _unquote(token[1:])


def _is_attribute_piece(piece: str) -> bool:
    head = piece.split(None, 1)[0]
    return head.startswith("!") or head in {"align", "addrspace", "syncscope"}


def _last_token(piece: str) -> str:
    """Last token of an operand, skipping trailing atomic ordering keywords."""
    tokens = TOKEN_RE.findall(piece)
    while tokens and (tokens[-1] in ATOMIC_ORDERINGS or tokens[-1].startswith("syncscope(")):
        tokens.pop()
    return tokens[-1] if tokens else ""


def _last_value(piece: str) -> str | None:
    return resolve_value(_last_token(piece))


def _value_pieces(rest: str) -> list[str]:
    return [piece for piece in _split_top_level(rest) if not _is_attribute_piece(piece)]


def _parse_branch(rest: str, line: int) -> tuple[list[str | None], tuple[str, ...]]:
    pieces = _value_pieces(rest)
    if len(pieces) == 1 and pieces[0].startswith("label"):
        dest = _last_token(pieces[0])
        return [resolve_value(dest)], (_label_target(dest, line),)
    if len(pieces) == 3:
        cond = _last_value(pieces[0])
        true_dest = _last_token(pieces[1])
        false_dest = _last_token(pieces[2])
        return (
            [cond, resolve_value(true_dest), resolve_value(false_dest)],
            (_label_target(true_dest, line), _label_target(false_dest, line)),
        )
    raise IRParseError(f"malformed br operands: {rest!r}", line)


def _parse_switch(rest: str, line: int) -> tuple[list[str | None], tuple[str, ...]]:
    head, sep, table = rest.partition("[")
    pieces = _split_top_level(head)
    if not sep or len(pieces) != 2:
        raise IRParseError(f"malformed switch: {rest!r}", line)
    default = _last_token(pieces[1])
    operands: list[str | None] = [_last_value(pieces[0]), resolve_value(default)]
    targets = [_label_target(default, line)]
    for value, dest in SWITCH_CASE_RE.findall(table.rstrip().rstrip("]")):
        operands.extend([resolve_value(value), resolve_value(dest)])
        targets.append(_label_target(dest, line))
    return operands, tuple(targets)


def _parse_indirectbr(rest: str, line: int) -> tuple[list[str | None], tuple[str, ...]]:
    head, sep, table = rest.partition("[")
    if not sep:
        raise IRParseError(f"malformed indirectbr: {rest!r}", line)
    dests = [_last_token(piece) for piece in _split_top_level(table.rstrip().rstrip("]"))]
    operands = [_last_value(head.rstrip().rstrip(","))]
    operands.extend(resolve_value(dest) for dest in dests)
    return operands, tuple(_label_target(dest, line) for dest in dests)


def _parse_call(opcode: str, rest: str, line: int) -> tuple[list[str | None], tuple[str, ...]]:
    match = CALLEE_RE.search(rest) or ASM_ARGS_RE.search(rest)
    close = _find_matching_paren(rest, match.end() - 1) if match else None
    if match is None or close is None:
        raise IRParseError(f"cannot find callee in {opcode}: {rest!r}", line)
    args = _value_pieces(rest[match.end() : close])
    operands = [_last_value(arg) for arg in args]
    targets: tuple[str, ...] = ()
    if opcode in {"invoke", "callbr"}:
        labels = LABEL_REF_RE.findall(rest[close + 1 :])
        if opcode == "invoke" and len(labels) != 2:
            raise IRParseError(f"invoke needs normal and unwind labels: {rest!r}", line)
        if not labels:
            raise IRParseError(f"callbr without destination labels: {rest!r}", line)
        operands.extend(resolve_value(label) for label in labels)
        targets = tuple(_label_target(label, line) for label in labels)
    # inline asm has no callee name
    callee = match.group(1) if match.re is CALLEE_RE else ""
    operands.append(resolve_value(callee))
    return operands, targets


def _parse_eh_terminator(rest: str, line: int) -> tuple[list[str | None], tuple[str, ...]]:
    """catchswitch, catchret and cleanupret: token operands, then labels.

    ``unwind to caller`` names no block and adds no target.
    """
    labels = LABEL_REF_RE.findall(rest)
    operands: list[str | None] = [
        resolve_value(ref) for ref in VALUE_REF_RE.findall(LABEL_REF_RE.sub(" ", rest))
    ]
    operands.extend(resolve_value(label) for label in labels)
    return operands, tuple(_label_target(label, line) for label in labels)


def _parse_operands(opcode: str, rest: str, line: int) -> tuple[list[str | None], tuple[str, ...]]:
    """Extract operand names (in order) and branch targets of one instruction."""
    if opcode == "br":
        return _parse_branch(rest, line)
    if opcode == "switch":
        return _parse_switch(rest, line)
    if opcode == "indirectbr":
        return _parse_indirectbr(rest, line)
    if opcode in {"call", "invoke", "callbr"}:
        return _parse_call(opcode, rest, line)
    if opcode in EH_TERMINATORS:
        return _parse_eh_terminator(rest, line)
    if opcode in {"ret", "resume"}:
        pieces = _value_pieces(rest)
        if not pieces or pieces[0] == "void":
            return [], ()
        return [_last_value(pieces[0])], ()
    if opcode == "unreachable":
        return [], ()
    if opcode == "phi":
        incoming = PHI_INCOMING_RE.findall(rest)
        if not incoming:
            raise IRParseError(f"phi without incoming values: {rest!r}", line)
        return [resolve_value(value) for value, _ in incoming], ()
    if opcode in CAST_OPCODES:
        source, sep, _ = rest.rpartition(" to ")
        if not sep:
            raise IRParseError(f"{opcode} without target type: {rest!r}", line)
        return [_last_value(source)], ()

    pieces = _value_pieces(rest)
    if opcode in LEADING_TYPE_OPCODES and len(pieces) > 1:
        pieces = pieces[1:]
    return [_last_value(piece) for piece in pieces], ()


def parse_instruction(text: str, line: int | None = None) -> Instruction:
    """Parse one instruction line (comment already removed)."""
    stripped = text.strip()
    result: str | None = None
    body = stripped
    match = RESULT_RE.match(stripped)
    if match:
        result = resolve_value(match.group(1))
        body = match.group(2)
    words = body.split(None, 1)
    if not words:
        raise IRParseError(f"missing opcode in {stripped!r}", line)
    opcode, rest = words[0], words[1] if len(words) > 1 else ""
    if opcode in CALL_PREFIXES:
        words = rest.split(None, 1)
        if not words:
            raise IRParseError(f"missing opcode in {stripped!r}", line)
        opcode, rest = words[0], words[1] if len(words) > 1 else ""
    operands, targets = _parse_operands(opcode, rest.strip(), line)
    return Instruction(
        opcode=opcode,
        operands=tuple(operands),
        result=result,
        targets=targets,
        text=stripped,
        line=line,
    )


class _FunctionBuilder:
    def __init__(self, name: str, line: int):
        self.name = name
        self.line = line
        self.blocks: list[BasicBlock] = []
        self.current: str | None = None
        self.instructions: list[Instruction] = []

    def start_block(self, name: str) -> None:
        self.flush()
        self.current = name

    def add(self, instr: Instruction) -> None:
        if self.current is None:
            self.current = "entry"
        self.instructions.append(instr)

    def flush(self) -> None:
        if self.current is not None:
            self.blocks.append(BasicBlock(self.current, tuple(self.instructions)))
        self.current = None
        self.instructions = []

    def build(self) -> Function:
        self.flush()
        return Function(self.name, tuple(self.blocks))


def parse_module(source: str) -> Module:
    """Parse LLVM-style textual IR into a Module.

    Only function bodies are interpreted. Globals, metadata, attribute
    groups and target lines are skipped; ``declare`` lines produce
    body-less functions.
    """
    functions: list[Function] = []
    builder: _FunctionBuilder | None = None
    pending: list[str] = []
    pending_line = 0

    for lineno, raw in enumerate(source.splitlines(), start=1):
        line = _strip_comment(raw).strip()
        if not line:
            continue

        if pending:
            pending.append(line)
            joined = " ".join(pending)
            if _bracket_balance(joined) <= 0:
                builder.add(parse_instruction(joined, pending_line))
                pending = []
            continue

        if builder is None:
            if line.startswith("define"):
                match = DEFINE_RE.match(line)
                if match is None:
                    raise IRParseError("cannot find function name in define", lineno)
                if not line.endswith("{"):
                    raise IRParseError("expected '{' at the end of define", lineno)
                builder = _FunctionBuilder(_unquote(match.group(1)), lineno)
            elif line.startswith("declare"):
                match = DECLARE_RE.match(line)
                if match is None:
                    raise IRParseError("cannot find function name in declare", lineno)
                functions.append(Function(_unquote(match.group(1))))
            continue

        if line == "}":
            functions.append(builder.build())
            builder = None
            continue
        if line.startswith("define"):
            raise IRParseError(f"nested define inside @{builder.name}", lineno)

        label = LABEL_RE.match(line)
        if label:
            builder.start_block(_unquote(label.group(1)))
            continue

        if _bracket_balance(line) > 0:
            pending = [line]
            pending_line = lineno
            continue
        builder.add(parse_instruction(line, lineno))

    if builder is not None:
        raise IRParseError(f"unterminated body of @{builder.name}", builder.line)

    logger.debug(
        "parsed %d functions (%d definitions)",
        len(functions),
        sum(1 for func in functions if not func.is_declaration),
    )
    return Module(tuple(functions), source=source)


def parse_file(path: str | Path) -> Module:
    """Read and parse a ``.ll`` file."""
    return parse_module(Path(path).read_text(encoding="utf-8"))
