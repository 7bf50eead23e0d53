from __future__ import annotations

from typing import Iterable

from ..analysis.live_variables import LivenessResult


def format_names(names: Iterable[str]) -> str:
    return " ".join(sorted(names))


def render_function_report(result: LivenessResult) -> str:
    """Header line for the function, then ``<block>: <live-out names>`` per block."""
    lines = [f"LivenessAnalysis: {result.function}"]
    for block in result.blocks:
        lines.append(f"{block}: {format_names(result.live_out[block])}")
    return "\n".join(lines)


def render_text_report(results: Iterable[LivenessResult]) -> str:
    return "".join(render_function_report(result) + "\n" for result in results)
