"""
Custom validators and shared annotated types for request payloads
"""
from datetime import date, datetime
from typing import Annotated, Any, Iterable, List, Optional

from pydantic import BeforeValidator, StringConstraints, ValidationError


def blank_to_none(value: Any) -> Any:
    """Empty or whitespace-only strings count as absent."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def coerce_date(value: Any) -> Any:
    """
    Accept a date, a datetime, an ISO date string or an ISO datetime string
    (``Z`` suffix allowed). ``""`` becomes None. Anything else is handed to
    pydantic unchanged so it can report the error.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if "T" in value or " " in value:
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
            except ValueError:
                return value
    return value


NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
OptionalStr = Annotated[Optional[str], BeforeValidator(blank_to_none)]
OptionalDate = Annotated[Optional[date], BeforeValidator(coerce_date)]
RequiredDate = Annotated[date, BeforeValidator(coerce_date)]


def format_validation_errors(
    exc: ValidationError,
    skip_segments: Iterable[str] = (),
) -> List[str]:
    """
    Flatten a pydantic ValidationError into one ``"path: message"`` string per
    failing location. Union tag segments listed in ``skip_segments`` are
    dropped from the path.
    """
    skip = set(skip_segments)
    messages: List[str] = []
    seen = set()
    for err in exc.errors():
        path = ".".join(str(p) for p in err["loc"] if str(p) not in skip)
        if path in seen:
            continue
        seen.add(path)
        msg = err["msg"]
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        messages.append(f"{path}: {msg}" if path else msg)
    return messages
