import json
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

def _sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()

def persist_failure(
    *,
    key_material: str,
    out_dir: Path,
    stage: str | None,
    error_type: str,
    error_message: str,
    raw_output: Any = None,
    keep_raw: bool = False,
) -> Path:
    """
    Writes a structured failure artifact for debugging.
    - Uses deterministic key based on the request payload
    - Remote payload preview only when keep_raw is set, capped
    """
    fail_dir = out_dir / "fail"
    fail_dir.mkdir(parents=True, exist_ok=True)

    key = _sha256_hex(key_material)[:16]
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    path = fail_dir / f"report_failure_{key}_{ts}.json"

    if raw_output is None:
        raw = ""
    elif isinstance(raw_output, str):
        raw = raw_output
    else:
        raw = json.dumps(raw_output, default=str)

    payload = {
        "key": key,
        "timestamp_utc": ts,
        "stage": stage,
        "error_type": error_type,
        "error_message": error_message,
        "raw_output_sha256": _sha256_hex(raw) if raw else None,
        "raw_output_preview": raw[:200] if keep_raw else "",  # cap
    }

    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path
