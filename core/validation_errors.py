from __future__ import annotations

from typing import Any, Iterable

_REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def _split_location(loc: Any) -> tuple[str, str]:
    if loc is None:
        parts: list[str] = []
    elif isinstance(loc, (list, tuple)):
        parts = [str(part) for part in loc]
    else:
        parts = [str(loc)]

    if parts and parts[0] in _REQUEST_LOCATIONS:
        return parts[0], ".".join(parts[1:]) or "(root)"
    return "body", ".".join(parts) or "(root)"


def _summary(missing: Iterable[str], error_count: int) -> str:
    missing = list(missing)
    if missing:
        noun = "field" if len(missing) == 1 else "fields"
        return f"Validation failed: missing required {noun}: {', '.join(missing)}."
    noun = "field" if error_count == 1 else "fields"
    return f"Validation failed for {error_count} {noun}."


def format_validation_error_details(errors: list[dict[str, Any]]) -> dict[str, Any]:
    """Shape pydantic errors for the 422 envelope, listing missing fields once."""
    field_errors: list[dict[str, str]] = []
    missing_fields: list[str] = []

    for error in errors:
        location, path = _split_location(error.get("loc"))
        error_type = str(error.get("type", "validation_error"))
        field_errors.append(
            {
                "path": path,
                "location": location,
                "message": str(error.get("msg", "Invalid value")),
                "errorType": error_type,
            }
        )
        if error_type == "missing" and path not in missing_fields:
            missing_fields.append(path)

    return {
        "summary": _summary(missing_fields, len(field_errors)),
        "missingFields": missing_fields,
        "fieldErrors": field_errors,
    }
