from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .contracts import ScanBatchResult


def serialize_scan_result(result: ScanBatchResult) -> str:
    payload: dict[str, Any] = result.to_dict()
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, indent=2) + "\n"


def write_scan_manifest_json(*, result: ScanBatchResult, out_manifest: Path) -> None:
    out_manifest.parent.mkdir(parents=True, exist_ok=True)
    out_manifest.write_text(serialize_scan_result(result), encoding="utf-8")
