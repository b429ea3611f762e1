APP_NAME = "FinanceFlow"
DB_FILE = "financeflow.db"
DATE_FORMAT = "%Y-%m-%d"
MONTH_FORMAT = "%Y-%m"

TRANSACTION_TYPES = ("income", "expense")
ACCOUNTS = ("bank", "cash")
STATUSES = ("pending", "completed")
BALANCE_MODES = ("actual", "forecast")

# Payment method follows the account unless given explicitly
ACCOUNT_METHODS = {
    "bank": "digital",
    "cash": "cash",
}

AUTO_CREATED_SUFFIX = " (auto-created)"
POT_WITHDRAWAL_NOTE = "Withdrawal from pot: {name}"
CORRECTION_CATEGORY = "Balance correction"
OPENING_BALANCE_CATEGORY = "Opening balance"

SIMULATION_HORIZON_DAYS = 1825  # 5 years
BALANCE_EPSILON = 0.01

# Categories whose materialized instances start out completed.
AUTO_COMPLETE_CATEGORIES: frozenset[str] = frozenset()

# (category, 'YYYY-MM') pairs the materializer and simulator leave out,
# e.g. a payment already received outside its normal cadence.
MATERIALIZE_SKIPS: tuple[tuple[str, str], ...] = ()

DEFAULT_POTS = [
    {"id": "pot_groceries", "display_name": "Groceries",  "category": "Groceries",
     "trigger_days": (1, 15),         "default_limit": 150.0},
    {"id": "pot_weekend",   "display_name": "Weekend",    "category": "Weekend",
     "trigger_days": (1, 8, 15, 22),  "default_limit": 120.0},
    {"id": "pot_weekdays",  "display_name": "Weekdays",   "category": "Weekdays",
     "trigger_days": (1, 8, 15, 22),  "default_limit": 120.0},
    {"id": "pot_smoking",   "display_name": "Smoking",    "category": "Smoking",
     "trigger_days": (1, 8, 15, 22),  "default_limit": 40.0},
]

DEFAULT_RULES = [
    # Income
    {"type": "income",  "category": "Benefits",          "amount": 363.00, "day_of_month": 28,
     "note": "End of month", "account": "bank"},
    {"type": "income",  "category": "Salary (reporter)", "amount": 170.89, "day_of_month": 28,
     "note": "End of month, variable", "account": "bank"},
    {"type": "income",  "category": "Salary (retail)",   "amount": 350.00, "day_of_month": 15,
     "note": "Mid-month", "account": "bank"},
    # Fixed expenses
    {"type": "expense", "category": "Rent/Food",         "amount": 227.00, "day_of_month": 1,
     "note": "Paid to family", "account": "bank"},
    {"type": "expense", "category": "Phone contract",    "amount": 59.00,  "day_of_month": 28,
     "note": "End of month", "account": "bank"},
    {"type": "expense", "category": "Phone installment", "amount": 26.25,  "day_of_month": 1,
     "note": "Until 2026-08-28", "account": "bank"},
    {"type": "expense", "category": "Spotify",           "amount": 10.99,  "day_of_month": 28,
     "note": "End of month", "account": "bank"},
    {"type": "expense", "category": "Payroll fee",       "amount": 9.95,   "day_of_month": 28,
     "note": "End of month", "account": "bank"},
    {"type": "expense", "category": "Streaming",         "amount": 6.99,   "day_of_month": 15,
     "note": "Mid-month", "account": "bank"},
    # Yearly, enabled by hand in January
    {"type": "expense", "category": "Insurance",         "amount": 40.00,  "day_of_month": 15,
     "note": "January only", "account": "bank", "active": False},
]

OPENING_BALANCE = 1399.69
