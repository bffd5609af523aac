# finance_tracker/core/patches.py
"""Payload validation for creating and updating records.

Each resource declares the JSON fields it accepts. Create payloads must
carry every required field; update payloads become a :class:`Patch` that
only touches the fields actually sent. Unknown fields are rejected in
both cases so a stray key never overwrites stored data.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional

from finance_tracker.core.models import (
    BUDGET_PERIODS,
    GOAL_PRIORITIES,
    TRANSACTION_TYPES,
)
from finance_tracker.errors import ValidationError


def parse_date(value: Any, name: str = "date") -> date:
    """Accept a date, a datetime, or an ISO 8601 string (with or without time)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            if len(text) == 10:
                return date.fromisoformat(text)
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError as exc:
            raise ValidationError(f"{name} must be an ISO date, got {value!r}") from exc
    raise ValidationError(f"{name} must be an ISO date, got {value!r}")


def parse_amount(value: Any, name: str = "amount") -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be a number") from exc
    if math.isnan(amount) or math.isinf(amount):
        raise ValidationError(f"{name} must be a finite number")
    if amount < 0:
        raise ValidationError(f"{name} must not be negative")
    return amount


def _text(value: Any, name: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string")
    return value.strip()


def _required_text(value: Any, name: str) -> str:
    text = _text(value, name)
    if not text:
        raise ValidationError(f"{name} is required")
    return text


def _choice(options) -> Callable[[Any, str], str]:
    def parse(value: Any, name: str) -> str:
        if value not in options:
            raise ValidationError(f"{name} must be one of {', '.join(options)}")
        return value

    return parse


def _boolean(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be true or false")
    return value


def _tags(value: Any, name: str) -> list:
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{name} must be a list of strings")
    tags: list = []
    for tag in value:
        if not isinstance(tag, str):
            raise ValidationError(f"{name} must be a list of strings")
        tag = tag.strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


@dataclass(frozen=True)
class FieldSpec:
    attr: str
    parse: Callable[[Any, str], Any]
    required: bool = False
    nullable: bool = False
    default: Optional[Callable[[], Any]] = None


@dataclass(frozen=True)
class Patch:
    """A validated partial update keyed by model attribute name."""

    changes: Mapping[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.changes)

    def apply(self, record):
        return replace(record, **self.changes)


@dataclass(frozen=True)
class ResourceSchema:
    name: str
    fields: Mapping[str, FieldSpec]
    updatable: FrozenSet[str]

    def _require_mapping(self, payload: Any) -> Mapping[str, Any]:
        if not isinstance(payload, Mapping):
            raise ValidationError(f"{self.name} payload must be a JSON object")
        return payload

    def _reject_unknown(self, payload: Mapping[str, Any], allowed) -> None:
        unknown = sorted(set(payload) - set(allowed))
        if unknown:
            raise ValidationError(f"Unknown {self.name} field(s): {', '.join(unknown)}")

    def _parse(self, key: str, value: Any) -> Any:
        spec = self.fields[key]
        if value is None:
            if spec.nullable:
                return spec.default() if spec.default is not None else None
            raise ValidationError(f"{key} is required")
        return spec.parse(value, key)

    def parse_create(self, payload: Any) -> Dict[str, Any]:
        """Return model keyword arguments for a new record."""
        payload = self._require_mapping(payload)
        self._reject_unknown(payload, self.fields)
        values: Dict[str, Any] = {}
        for key, spec in self.fields.items():
            if payload.get(key) is None:
                if spec.required:
                    raise ValidationError(f"{key} is required")
                if spec.default is not None:
                    values[spec.attr] = spec.default()
                continue
            values[spec.attr] = self._parse(key, payload[key])
        return values

    def parse_patch(self, payload: Any) -> Patch:
        payload = self._require_mapping(payload)
        self._reject_unknown(payload, self.updatable)
        return Patch({self.fields[key].attr: self._parse(key, value) for key, value in payload.items()})


TRANSACTION_SCHEMA = ResourceSchema(
    name="transaction",
    fields={
        "type": FieldSpec("type", _choice(TRANSACTION_TYPES), required=True),
        "category": FieldSpec("category", _required_text, required=True),
        "amount": FieldSpec("amount", parse_amount, required=True),
        "description": FieldSpec("description", _required_text, required=True),
        "date": FieldSpec("date", parse_date, default=date.today),
        "tags": FieldSpec("tags", _tags, default=list),
    },
    updatable=frozenset({"type", "category", "amount", "description", "date", "tags"}),
)

BUDGET_SCHEMA = ResourceSchema(
    name="budget",
    fields={
        "name": FieldSpec("name", _required_text, required=True),
        "category": FieldSpec("category", _required_text, required=True),
        "amount": FieldSpec("amount", parse_amount, required=True),
        "period": FieldSpec("period", _choice(BUDGET_PERIODS), default=lambda: "monthly"),
        "startDate": FieldSpec("start_date", parse_date, default=date.today),
        "endDate": FieldSpec("end_date", parse_date, nullable=True),
        "description": FieldSpec("description", _text, nullable=True, default=str),
        "isActive": FieldSpec("is_active", _boolean),
    },
    updatable=frozenset(
        {"name", "category", "amount", "period", "startDate", "endDate", "description", "isActive"}
    ),
)

# currentAmount and isActive only move through deposit_to_goal.
SAVINGS_GOAL_SCHEMA = ResourceSchema(
    name="savings goal",
    fields={
        "name": FieldSpec("name", _required_text, required=True),
        "targetAmount": FieldSpec("target_amount", parse_amount, required=True),
        "targetDate": FieldSpec("target_date", parse_date, required=True),
        "description": FieldSpec("description", _text, nullable=True, default=str),
        "priority": FieldSpec("priority", _choice(GOAL_PRIORITIES), default=lambda: "medium"),
        "category": FieldSpec("category", _required_text, default=lambda: "General"),
    },
    updatable=frozenset({"name", "targetAmount", "targetDate", "description", "priority", "category"}),
)


def parse_deposit(payload: Any) -> float:
    """Extract the non-negative ``amount`` of an add-amount request."""
    if not isinstance(payload, Mapping) or payload.get("amount") is None:
        raise ValidationError("amount is required")
    return parse_amount(payload["amount"])
