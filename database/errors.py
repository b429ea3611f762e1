class BudgetError(Exception):
    """Base class for errors surfaced to the caller by the store and services."""


class StoreUnavailable(BudgetError):
    """The database was used before DatabaseManager.initialize()."""


class NotFound(BudgetError):
    def __init__(self, kind: str, record_id):
        super().__init__(f"{kind} '{record_id}' does not exist.")
        self.kind = kind
        self.record_id = record_id


class DuplicateRecord(BudgetError):
    def __init__(self, kind: str, record_id):
        super().__init__(f"{kind} '{record_id}' already exists.")
        self.kind = kind
        self.record_id = record_id


class ConcurrentDuplicate(BudgetError):
    """A rule already has a transaction in the target month. Callers treat this as a no-op."""

    def __init__(self, rule_id: str, month: str):
        super().__init__(f"Rule '{rule_id}' already materialized for {month}.")
        self.rule_id = rule_id
        self.month = month
