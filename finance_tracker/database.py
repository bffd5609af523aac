import json
import logging
import sqlite3
import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Type

from finance_tracker.core.models import Budget, SavingsGoal, Transaction

logger = logging.getLogger(__name__)


def _init_db(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id TEXT PRIMARY KEY,
            owner TEXT NOT NULL,
            type TEXT NOT NULL CHECK (type IN ('income', 'expense')),
            category TEXT NOT NULL,
            amount REAL NOT NULL CHECK (amount >= 0),
            description TEXT NOT NULL,
            date TEXT NOT NULL,
            tags TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_transactions_owner_date
            ON transactions (owner, date);

        CREATE TABLE IF NOT EXISTS budgets (
            id TEXT PRIMARY KEY,
            owner TEXT NOT NULL,
            name TEXT NOT NULL,
            category TEXT NOT NULL,
            amount REAL NOT NULL CHECK (amount >= 0),
            period TEXT NOT NULL CHECK (period IN ('weekly', 'monthly', 'yearly')),
            start_date TEXT NOT NULL,
            end_date TEXT,
            description TEXT NOT NULL DEFAULT '',
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_budgets_owner ON budgets (owner);

        CREATE TABLE IF NOT EXISTS savings_goals (
            id TEXT PRIMARY KEY,
            owner TEXT NOT NULL,
            name TEXT NOT NULL,
            target_amount REAL NOT NULL CHECK (target_amount >= 0),
            current_amount REAL NOT NULL DEFAULT 0 CHECK (current_amount >= 0),
            target_date TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            priority TEXT NOT NULL CHECK (priority IN ('low', 'medium', 'high')),
            category TEXT NOT NULL DEFAULT 'General',
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_savings_goals_owner ON savings_goals (owner);
        """
    )
    conn.commit()


def _connect(db_path: str) -> sqlite3.Connection:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    _init_db(conn)
    return conn


def init_db(db_path: str) -> None:
    """Create the record tables in *db_path* if they do not exist yet."""
    conn = _connect(db_path)
    conn.close()


def _opt_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _opt_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _transaction_row(tx: Transaction) -> Dict[str, object]:
    return {
        "owner": tx.owner,
        "type": tx.type,
        "category": tx.category,
        "amount": float(tx.amount),
        "description": tx.description,
        "date": tx.date.isoformat(),
        "tags": json.dumps(list(tx.tags)),
    }


def _row_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        owner=row["owner"],
        type=row["type"],
        category=row["category"],
        amount=float(row["amount"]),
        description=row["description"],
        date=date.fromisoformat(row["date"]),
        tags=json.loads(row["tags"] or "[]"),
        created_at=_opt_datetime(row["created_at"]),
        updated_at=_opt_datetime(row["updated_at"]),
    )


def _budget_row(budget: Budget) -> Dict[str, object]:
    return {
        "owner": budget.owner,
        "name": budget.name,
        "category": budget.category,
        "amount": float(budget.amount),
        "period": budget.period,
        "start_date": budget.start_date.isoformat(),
        "end_date": budget.end_date.isoformat() if budget.end_date else None,
        "description": budget.description or "",
        "is_active": int(bool(budget.is_active)),
    }


def _row_budget(row: sqlite3.Row) -> Budget:
    return Budget(
        id=row["id"],
        owner=row["owner"],
        name=row["name"],
        category=row["category"],
        amount=float(row["amount"]),
        period=row["period"],
        start_date=date.fromisoformat(row["start_date"]),
        end_date=_opt_date(row["end_date"]),
        description=row["description"],
        is_active=bool(row["is_active"]),
        created_at=_opt_datetime(row["created_at"]),
        updated_at=_opt_datetime(row["updated_at"]),
    )


def _goal_row(goal: SavingsGoal) -> Dict[str, object]:
    return {
        "owner": goal.owner,
        "name": goal.name,
        "target_amount": float(goal.target_amount),
        "current_amount": float(goal.current_amount),
        "target_date": goal.target_date.isoformat(),
        "description": goal.description or "",
        "priority": goal.priority,
        "category": goal.category,
        "is_active": int(bool(goal.is_active)),
    }


def _row_goal(row: sqlite3.Row) -> SavingsGoal:
    return SavingsGoal(
        id=row["id"],
        owner=row["owner"],
        name=row["name"],
        target_amount=float(row["target_amount"]),
        current_amount=float(row["current_amount"]),
        target_date=date.fromisoformat(row["target_date"]),
        description=row["description"],
        priority=row["priority"],
        category=row["category"],
        is_active=bool(row["is_active"]),
        created_at=_opt_datetime(row["created_at"]),
        updated_at=_opt_datetime(row["updated_at"]),
    )


# table, model -> row, row -> model, ORDER BY clause for listings
_TABLES: Dict[type, Tuple[str, Callable, Callable, str]] = {
    Transaction: ("transactions", _transaction_row, _row_transaction, "date DESC, created_at DESC"),
    Budget: ("budgets", _budget_row, _row_budget, "created_at DESC, rowid DESC"),
    SavingsGoal: ("savings_goals", _goal_row, _row_goal, "created_at DESC, rowid DESC"),
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def insert_record(db_path: str, record):
    """Persist a new record and return it with its id and timestamps set."""
    table, to_row, _, _ = _TABLES[type(record)]
    stamp = _now()
    stored = replace(record, id=uuid.uuid4().hex, created_at=stamp, updated_at=stamp)
    values = to_row(stored)
    values.update(id=stored.id, created_at=stamp.isoformat(), updated_at=stamp.isoformat())
    columns = ", ".join(values)
    placeholders = ", ".join("?" for _ in values)
    conn = _connect(db_path)
    try:
        conn.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            list(values.values()),
        )
        conn.commit()
    finally:
        conn.close()
    logger.debug("Inserted %s %s for owner %s", table, stored.id, stored.owner)
    return stored


def get_record(db_path: str, model: Type, record_id: str):
    """Fetch a single record by id, or ``None`` when it does not exist."""
    table, _, from_row, _ = _TABLES[model]
    conn = _connect(db_path)
    try:
        row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (record_id,)).fetchone()
    finally:
        conn.close()
    return from_row(row) if row else None


def list_records(
    db_path: str,
    model: Type,
    owner: str,
    start_date: date | None = None,
    end_date: date | None = None,
    active_only: bool = False,
) -> List:
    """Return every record of *model* owned by *owner*.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.
    model:
        ``Transaction``, ``Budget`` or ``SavingsGoal``.
    owner:
        Owner identifier the records are scoped to.
    start_date, end_date:
        Optional inclusive bounds on the transaction ``date`` column.
    active_only:
        Restrict budgets or goals to ``is_active`` rows.
    """
    table, _, from_row, order_by = _TABLES[model]
    conditions = ["owner = ?"]
    params: list = [owner]
    if start_date:
        conditions.append("date >= ?")
        params.append(start_date.isoformat())
    if end_date:
        conditions.append("date <= ?")
        params.append(end_date.isoformat())
    if active_only:
        conditions.append("is_active = 1")
    query = f"SELECT * FROM {table} WHERE {' AND '.join(conditions)} ORDER BY {order_by}"
    conn = _connect(db_path)
    try:
        rows = conn.execute(query, params).fetchall()
    finally:
        conn.close()
    return [from_row(r) for r in rows]


def update_record(db_path: str, record):
    """Overwrite a stored record in place and return it with a fresh ``updated_at``."""
    table, to_row, _, _ = _TABLES[type(record)]
    stored = replace(record, updated_at=_now())
    values = to_row(stored)
    values["updated_at"] = stored.updated_at.isoformat()
    assignments = ", ".join(f"{column} = ?" for column in values)
    conn = _connect(db_path)
    try:
        cur = conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",
            list(values.values()) + [stored.id],
        )
        conn.commit()
        updated = cur.rowcount
    finally:
        conn.close()
    return stored if updated else None


def delete_record(db_path: str, model: Type, record_id: str) -> bool:
    table, _, _, _ = _TABLES[model]
    conn = _connect(db_path)
    try:
        cur = conn.execute(f"DELETE FROM {table} WHERE id = ?", (record_id,))
        conn.commit()
        deleted = cur.rowcount
    finally:
        conn.close()
    return bool(deleted)
