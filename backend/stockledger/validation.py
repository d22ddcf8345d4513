from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# Upper bound for any quantity field; keeps values inside a 32-bit INTEGER column.
MAX_QUANTITY = 2_147_483_647


class InventoryError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400

    def __init__(self, message: str, *, line: int | None = None):
        super().__init__(message)
        self.message = message
        # Index of the offending bulk line item, when applicable
        self.line = line

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.line is not None:
            body["line"] = self.line
        return body


class ValidationError(InventoryError, ValueError):
    """400-level input problem."""

    status_code = 400


class NotFoundError(InventoryError, LookupError):
    """404-level missing record, variant or location."""

    status_code = 404


class ConflictError(InventoryError, ValueError):
    """409-level concurrency conflict (record changed under us)."""

    status_code = 409


@dataclass(frozen=True)
class PayloadPolicy:
    """
    Central policy layer:
    - fields: what clients are allowed to send, mapped to the expected python type
    - required: fields that must be present
    - non_negative: integer fields that must be >= 0
    - positive: integer fields that must be > 0
    - nullable: fields that may be sent as null (treated as "not provided")
    """
    fields: dict[str, type]
    required: set[str] = field(default_factory=set)
    non_negative: set[str] = field(default_factory=set)
    positive: set[str] = field(default_factory=set)
    nullable: set[str] = field(default_factory=set)
    max_lengths: dict[str, int] = field(default_factory=dict)


def _coerce_value(key: str, expected: type, value: Any):
    # Integers - strict validation to reject floats and scientific notation
    if expected is int:
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{key} must be an integer, not a decimal")
        raise ValidationError(f"{key} must be an integer")

    if expected is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValidationError(f"{key} must be a boolean")

    if expected is str:
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            raise ValidationError(f"{key} must be a string")
        return str(value).strip()

    if expected is list:
        if not isinstance(value, list):
            raise ValidationError(f"{key} must be an array")
        return value

    # Default: leave as-is
    return value


def validate_payload(*, payload: Any, policy: PayloadPolicy) -> dict:
    """
    Validates + normalizes an incoming JSON object against a PayloadPolicy.

    Returns a cleaned dict holding only the fields the client actually sent
    (null values for nullable fields are dropped). Unknown fields are rejected.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = sorted(f for f in policy.required if payload.get(f) is None)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    for k in payload.keys():
        if k not in policy.fields:
            raise ValidationError(f"Field not allowed: {k}")

    cleaned: dict = {}
    for k, raw in payload.items():
        if raw is None:
            if k in policy.nullable:
                continue
            raise ValidationError(f"{k} cannot be null")

        val = _coerce_value(k, policy.fields[k], raw)

        if isinstance(val, int) and not isinstance(val, bool):
            if k in policy.positive and val <= 0:
                raise ValidationError(f"{k} must be a positive integer")
            if k in policy.non_negative and val < 0:
                raise ValidationError(f"{k} must be a non-negative integer")
            if abs(val) > MAX_QUANTITY:
                raise ValidationError(f"{k} cannot exceed {MAX_QUANTITY}")

        max_len = policy.max_lengths.get(k)
        if max_len and isinstance(val, str) and len(val) > max_len:
            raise ValidationError(f"{k} exceeds max length {max_len}")

        cleaned[k] = val

    return cleaned


def enforce_rules_reason(patch: dict, *, required: bool) -> None:
    """Movement reasons are free text but never blank when supplied."""
    if "reason" in patch and patch["reason"] == "":
        raise ValidationError("reason cannot be blank")
    if required and not patch.get("reason"):
        raise ValidationError("reason is required")


def enforce_rules_record_update(patch: dict, fields: set[str]) -> None:
    # At least one mutable field must be present for location-scoped updates
    if not any(f in patch for f in fields):
        raise ValidationError("At least one field to update must be provided")


def enforce_rules_bulk_items(items: list) -> None:
    if not items:
        raise ValidationError("items array is required")
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("each item must be an object", line=index)
