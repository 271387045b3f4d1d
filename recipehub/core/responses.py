"""Success envelope helpers. Error envelopes are built by the handlers in main.py."""

from typing import Any, Optional


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    return {"status": "success", "data": data, "message": message}


def error_body(message: str, errors: Optional[list] = None) -> dict:
    return {"status": "error", "message": message, "errors": errors or []}


def dump_all(schema, rows) -> list:
    return [schema.model_validate(r) for r in rows]
