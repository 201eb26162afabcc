import hashlib
from pathlib import Path

def _sha256_hex(s: str) -> str:
    return hashlib.sha256(s.encode("utf-8")).hexdigest()

def persist_report(pdf: bytes, *, key_material: str, out_dir: Path) -> Path:
    """
    Idempotent persistence:
    - Same request payload -> same output path
    - Prevents duplicates across retries / reruns
    - Uses atomic write via temp file + replace
    """
    out_dir.mkdir(parents=True, exist_ok=True)

    key = _sha256_hex(key_material)[:16]  # short stable identifier
    path = out_dir / f"conversation_report_{key}.pdf"

    tmp_path = path.with_suffix(".pdf.tmp")
    tmp_path.write_bytes(pdf)
    tmp_path.replace(path)  # atomic on same filesystem

    return path
