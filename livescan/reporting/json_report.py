from __future__ import annotations

import json
from typing import Any, Iterable

from ..analysis.live_variables import LivenessResult


def result_to_dict(result: LivenessResult) -> dict[str, Any]:
    return {
        "function": result.function,
        "blocks": [
            {
                "name": block,
                "successors": list(result.successors[block]),
                "use": sorted(result.local[block].use),
                "kill": sorted(result.local[block].kill),
                "live_out": sorted(result.live_out[block]),
            }
            for block in result.blocks
        ],
    }


def render_json_report(results: Iterable[LivenessResult]) -> str:
    return json.dumps([result_to_dict(result) for result in results], indent=2) + "\n"
