# finance_tracker/core/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

TRANSACTION_TYPES = ("income", "expense")
BUDGET_PERIODS = ("weekly", "monthly", "yearly")
GOAL_PRIORITIES = ("low", "medium", "high")


def money(value) -> Decimal:
    """Exact decimal form of a stored amount, for sums and differences."""
    return Decimal(str(value))


def progress_percent(current: float, target: float) -> int:
    """Whole-number percentage of *target* reached, halves rounded up."""
    if target <= 0:
        return 0
    ratio = money(current) / money(target) * 100
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _iso(value: date | datetime | None) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass
class Transaction:
    owner: str
    type: str
    category: str
    amount: float
    description: str
    date: date
    tags: List[str] = field(default_factory=list)
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "type": self.type,
            "category": self.category,
            "amount": self.amount,
            "description": self.description,
            "date": _iso(self.date),
            "tags": list(self.tags),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass
class Budget:
    owner: str
    name: str
    category: str
    amount: float
    period: str = "monthly"
    start_date: date = field(default_factory=date.today)
    end_date: Optional[date] = None
    description: str = ""
    is_active: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "name": self.name,
            "category": self.category,
            "amount": self.amount,
            "period": self.period,
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "description": self.description,
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass
class SavingsGoal:
    owner: str
    name: str
    target_amount: float
    target_date: date
    current_amount: float = 0.0
    description: str = ""
    priority: str = "medium"
    category: str = "General"
    is_active: bool = True
    id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def progress_percentage(self) -> int:
        return progress_percent(self.current_amount, self.target_amount)

    @property
    def remaining_amount(self) -> float:
        return float(money(self.target_amount) - money(self.current_amount))

    def days_remaining(self, today: date | None = None) -> int:
        return (self.target_date - (today or date.today())).days

    def to_dict(self, today: date | None = None) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner": self.owner,
            "name": self.name,
            "targetAmount": self.target_amount,
            "currentAmount": self.current_amount,
            "targetDate": _iso(self.target_date),
            "description": self.description,
            "priority": self.priority,
            "category": self.category,
            "isActive": self.is_active,
            "progressPercentage": self.progress_percentage,
            "remainingAmount": self.remaining_amount,
            "daysRemaining": self.days_remaining(today),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


def belongs_to(record, requester: str) -> bool:
    """Return True when *record* is owned by *requester*."""
    return record is not None and str(record.owner) == str(requester)
