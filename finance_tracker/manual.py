import yaml

from finance_tracker.core.models import Budget, SavingsGoal, Transaction
from finance_tracker.core.patches import BUDGET_SCHEMA, SAVINGS_GOAL_SCHEMA, TRANSACTION_SCHEMA
from finance_tracker.database import insert_record
from finance_tracker.errors import ValidationError

_SECTIONS = {
    "transactions": (Transaction, TRANSACTION_SCHEMA),
    "budgets": (Budget, BUDGET_SCHEMA),
    "savingsGoals": (SavingsGoal, SAVINGS_GOAL_SCHEMA),
}


def load_manual_records(path, owner):
    """Parse a YAML file of records for *owner* without storing them.

    The file is either a list of transactions or a mapping with
    ``transactions``, ``budgets`` and ``savingsGoals`` lists.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, list):
        data = {"transactions": data}
    if not isinstance(data, dict):
        raise ValidationError(f"Unrecognized layout in {path}")

    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValidationError(f"Unknown section(s) in {path}: {', '.join(unknown)}")

    records = []
    for section, (model, schema) in _SECTIONS.items():
        for entry in data.get(section) or []:
            try:
                values = schema.parse_create(entry)
            except ValidationError as exc:
                raise ValidationError(f"{exc} in {section} entry: {entry}") from exc
            records.append(model(owner=owner, **values))
    return records


def import_manual_records(path, owner, db_path):
    """Store every record from *path* and return how many of each kind were added."""
    counts = {section: 0 for section in _SECTIONS}
    sections = {model: section for section, (model, _) in _SECTIONS.items()}
    for record in load_manual_records(path, owner):
        insert_record(db_path, record)
        counts[sections[type(record)]] += 1
    return counts
