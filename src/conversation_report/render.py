import re
from pathlib import Path
from typing import Any, Mapping

from conversation_report.schema import ReportData

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
DEFAULT_TEMPLATE = TEMPLATES_DIR / "conversation-report.html"

_INDEXED_FIELD = re.compile(r"\{\{(\w+)\[(\d+)\]\.(\w+)\}\}")
_INDEXED = re.compile(r"\{\{(\w+)\[(\d+)\]\}\}")
_SCALAR = re.compile(r"\{\{(\w+)\}\}")


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _item(data: Mapping[str, Any], name: str, index: str) -> Any:
    seq = data.get(name)
    if not isinstance(seq, (list, tuple)):
        return None
    i = int(index)
    return seq[i] if i < len(seq) else None


def render(template: str, data: Mapping[str, Any]) -> str:
    """
    Fill {{token}} placeholders from a data mapping.

    - {{name}}            -> data[name]
    - {{name[i]}}         -> data[name][i]
    - {{name[i].field}}   -> data[name][i][field]

    Anything that does not resolve becomes an empty string.
    """

    def indexed_field(m: re.Match) -> str:
        item = _item(data, m.group(1), m.group(2))
        if not isinstance(item, Mapping):
            return ""
        value = item.get(m.group(3))
        if isinstance(value, (Mapping, list, tuple)):
            return ""
        return _as_text(value)

    def indexed(m: re.Match) -> str:
        item = _item(data, m.group(1), m.group(2))
        if isinstance(item, (Mapping, list, tuple)):
            return ""
        return _as_text(item)

    def scalar(m: re.Match) -> str:
        value = data.get(m.group(1))
        if isinstance(value, (Mapping, list, tuple)):
            return ""
        return _as_text(value)

    # order matters: most specific pattern first
    result = _INDEXED_FIELD.sub(indexed_field, template)
    result = _INDEXED.sub(indexed, result)
    return _SCALAR.sub(scalar, result)


def load_template(path: Path | None = None) -> str:
    path = path or DEFAULT_TEMPLATE
    if not path.exists():
        raise FileNotFoundError(f"Report template not found: {path}")
    return path.read_text(encoding="utf-8")


def render_report(data: ReportData, template: str | None = None) -> str:
    return render(template if template is not None else load_template(), data.to_template_context())
