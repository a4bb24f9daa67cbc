# Overview: Request payload validation for model-backed JSON bodies.

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text


# 9,999,999.99 in a single line item price
MAX_PRICE_CENTS = 999_999_999

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """Bad input; routes answer 400."""


class ConflictError(ValueError):
    """Input clashes with stored data (duplicate number, row still referenced); routes answer 409."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which columns a client may set, and which a create must include."""
    writable_fields: frozenset[str] | set[str]
    required_on_create: frozenset[str] | set[str] = field(default_factory=frozenset)


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str):
        text = value.strip()
        # "12.50" and "1e3" are money typos, not integers
        if text.lstrip("-").isdigit():
            return int(text)
    raise ValidationError(f"{key} must be an integer")


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValidationError(f"{key} must be a boolean")


def _clean(column, value: Any) -> Any:
    """Coerce one raw JSON value to the column's Python type."""
    coltype = column.type
    if isinstance(coltype, Boolean):
        return _as_bool(column.key, value)
    if isinstance(coltype, Integer):
        return _as_int(column.key, value)
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{column.key} must be a string")
        text = str(value).strip()
        if not text:
            if not column.nullable:
                raise ValidationError(f"{column.key} cannot be blank")
            return None
        limit = getattr(coltype, "length", None)
        if limit and len(text) > limit:
            raise ValidationError(f"{column.key} exceeds max length {limit}")
        return text
    return value


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Normalize a JSON body against the model's columns and a policy.

    partial=False is create semantics: every field in required_on_create
    must be present. partial=True validates only the keys sent. Returns a
    patch dict holding only writable columns; blank optional text becomes
    None.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(name for name in policy.required_on_create if name not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        column = columns.get(key)
        if column is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        else:
            patch[key] = _clean(column, raw)
    return patch


def enforce_rules_product(patch: dict) -> None:
    price = patch.get("price_cents")
    if price is None:
        return
    if price < 0:
        raise ValidationError("price_cents must be >= 0")
    if price > MAX_PRICE_CENTS:
        raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_customer(patch: dict) -> None:
    from .models import CUSTOMER_RANKS

    if patch.get("rank") is not None:
        rank = patch["rank"].lower()
        if rank not in CUSTOMER_RANKS:
            raise ValidationError(f"rank must be one of: {', '.join(CUSTOMER_RANKS)}")
        patch["rank"] = rank

    email = patch.get("email")
    if email and not _EMAIL_RE.match(email):
        raise ValidationError("email is not a valid address")


def parse_positive_int(value: Any, field_name: str) -> int:
    """Strict int parse for request bodies that are not model-backed."""
    if value is None:
        raise ValidationError(f"{field_name} must be an integer")
    result = _as_int(field_name, value)
    if result <= 0:
        raise ValidationError(f"{field_name} must be > 0")
    return result
