"""Request handlers for transactions, budgets and savings goals.

Every handler receives the database path and the requesting owner id and
returns a JSON-ready payload. Failures are raised as exceptions from
:mod:`finance_tracker.errors`; the HTTP layer turns them into responses.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Type

from finance_tracker import database, stats
from finance_tracker.core.models import Budget, SavingsGoal, Transaction, belongs_to
from finance_tracker.core.patches import (
    BUDGET_SCHEMA,
    SAVINGS_GOAL_SCHEMA,
    TRANSACTION_SCHEMA,
    ResourceSchema,
    parse_date,
    parse_deposit,
)
from finance_tracker.errors import NotAuthorizedError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resource:
    path: str
    label: str
    model: Type
    schema: ResourceSchema


TRANSACTIONS = Resource("transactions", "Transaction", Transaction, TRANSACTION_SCHEMA)
BUDGETS = Resource("budgets", "Budget", Budget, BUDGET_SCHEMA)
SAVINGS_GOALS = Resource("savings-goals", "Savings goal", SavingsGoal, SAVINGS_GOAL_SCHEMA)

RESOURCES: Dict[str, Resource] = {r.path: r for r in (TRANSACTIONS, BUDGETS, SAVINGS_GOALS)}


def _fetch_owned(db_path: str, resource: Resource, owner: str, record_id: str):
    record = database.get_record(db_path, resource.model, record_id)
    if record is None:
        raise NotFoundError(f"{resource.label} not found")
    if not belongs_to(record, owner):
        logger.warning("Owner %s denied access to %s %s", owner, resource.path, record_id)
        raise NotAuthorizedError("Not authorized")
    return record


def list_records(db_path: str, resource: Resource, owner: str) -> List[Dict[str, Any]]:
    return [r.to_dict() for r in database.list_records(db_path, resource.model, owner)]


def get_record(db_path: str, resource: Resource, owner: str, record_id: str) -> Dict[str, Any]:
    return _fetch_owned(db_path, resource, owner, record_id).to_dict()


def create_record(db_path: str, resource: Resource, owner: str, payload: Any) -> Dict[str, Any]:
    values = resource.schema.parse_create(payload)
    record = database.insert_record(db_path, resource.model(owner=owner, **values))
    logger.info("Created %s %s for owner %s", resource.path, record.id, owner)
    return record.to_dict()


def update_record(
    db_path: str, resource: Resource, owner: str, record_id: str, payload: Any
) -> Dict[str, Any]:
    existing = _fetch_owned(db_path, resource, owner, record_id)
    patch = resource.schema.parse_patch(payload)
    record = patch.apply(existing)
    if isinstance(record, SavingsGoal):
        record = stats.mark_completed(record)
    updated = database.update_record(db_path, record)
    if updated is None:
        raise NotFoundError(f"{resource.label} not found")
    return updated.to_dict()


def delete_record(db_path: str, resource: Resource, owner: str, record_id: str) -> Dict[str, str]:
    _fetch_owned(db_path, resource, owner, record_id)
    database.delete_record(db_path, resource.model, record_id)
    logger.info("Deleted %s %s for owner %s", resource.path, record_id, owner)
    return {"message": f"{resource.label} removed"}


def _parse_range(start: Optional[str], end: Optional[str]):
    start_date = parse_date(start, "startDate") if start else None
    end_date = parse_date(end, "endDate") if end else None
    if start_date and end_date and start_date > end_date:
        raise ValidationError("startDate must be on or before endDate")
    return start_date, end_date


def transaction_stats(
    db_path: str, owner: str, start: Optional[str] = None, end: Optional[str] = None
) -> Dict[str, object]:
    start_date, end_date = _parse_range(start, end)
    transactions = database.list_records(
        db_path, Transaction, owner, start_date=start_date, end_date=end_date
    )
    return stats.transaction_stats(transactions)


def budget_stats(db_path: str, owner: str) -> Dict[str, object]:
    return stats.budget_stats(database.list_records(db_path, Budget, owner, active_only=True))


def savings_goal_stats(db_path: str, owner: str) -> Dict[str, object]:
    return stats.savings_goal_stats(database.list_records(db_path, SavingsGoal, owner))


STATS_HANDLERS = {
    TRANSACTIONS.path: transaction_stats,
    BUDGETS.path: budget_stats,
    SAVINGS_GOALS.path: savings_goal_stats,
}


def add_amount_to_goal(db_path: str, owner: str, goal_id: str, payload: Any) -> Dict[str, Any]:
    goal = _fetch_owned(db_path, SAVINGS_GOALS, owner, goal_id)
    amount = parse_deposit(payload)
    updated = database.update_record(db_path, stats.deposit(goal, amount))
    if updated is None:
        raise NotFoundError(f"{SAVINGS_GOALS.label} not found")
    if goal.is_active and not updated.is_active:
        logger.info("Savings goal %s reached its target", goal_id)
    return updated.to_dict()


def report(
    db_path: str,
    owner: str,
    range_name: Optional[str] = None,
    category: Optional[str] = None,
    today: date | None = None,
) -> Dict[str, object]:
    return stats.build_report(
        database.list_records(db_path, Transaction, owner),
        database.list_records(db_path, Budget, owner),
        database.list_records(db_path, SavingsGoal, owner),
        range_name=range_name or "month",
        category=category,
        today=today,
    )
