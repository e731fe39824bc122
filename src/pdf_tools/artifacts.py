from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .contracts import PdfToolResult


def serialize_tool_result(result: PdfToolResult) -> str:
    payload: dict[str, Any] = result.to_dict()
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2) + "\n"


def write_tool_manifest_json(*, result: PdfToolResult, out_manifest: Path) -> None:
    out_manifest.parent.mkdir(parents=True, exist_ok=True)
    out_manifest.write_text(serialize_tool_result(result), encoding="utf-8")
