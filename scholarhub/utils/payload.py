import json
from typing import Any


def dump_payload(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value)


def load_payload(raw: str | None) -> Any:
    """Decode a stored JSON payload column.

    Rows written by older clients may hold plain text; those degrade to a
    single-element list instead of raising.
    """
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return [raw]
