from __future__ import annotations

from ..analysis.live_variables import LivenessResult
from .text import format_names


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def render_cfg_dot(live_vars: LivenessResult) -> str:
    """Emit a DOT digraph of the CFG with each block labelled by its live-out set."""
    ids = {block: idx for idx, block in enumerate(live_vars.blocks)}
    lines = [f'digraph "{_escape(live_vars.function)}" {{', "  node [shape=box];"]
    for block, node_id in ids.items():
        live_out = format_names(live_vars.live_out[block]) or "-"
        label = f"{_escape(block)}\\nout: {_escape(live_out)}"
        lines.append(f'  n{node_id} [label="{label}"];')
    for block, node_id in ids.items():
        for succ in live_vars.successors[block]:
            lines.append(f"  n{node_id} -> n{ids[succ]};")
    lines.append("}")
    return "\n".join(lines) + "\n"
