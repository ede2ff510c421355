APP_NAME = "BizLedger"
DB_FILE = "bizledger.db"
DB_BUSY_TIMEOUT = 5.0
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_CURRENCY = "USD"
DATE_FORMAT = "%Y-%m-%d"
MONTH_FORMAT = "%Y-%m"

BUDGET_WARNING_PERCENT = 90.0
BUDGET_OVER_PERCENT = 100.0
BUDGET_ALERT_THRESHOLD = 90.0
UPCOMING_REMINDER_DAYS = 7

# Safety bound for walking a rule forward to a target date.
MAX_OCCURRENCE_STEPS = 100_000

TRANSACTION_TYPES = ("income", "expense")
TRANSACTION_STATUSES = ("pending", "completed", "failed")

ACCOUNT_TYPES = ("bank", "cash", "credit", "investment", "other")
# Accounts whose balance moves opposite to the transaction kind.
INVERTED_ACCOUNT_TYPES = ("credit",)

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
SCHEDULE_STATUSES = ("active", "paused", "completed")

BUDGET_TYPES = ("annual", "monthly", "quarterly", "project")
BUDGET_STATUSES = ("active", "archived", "draft")

DEFAULT_SETTINGS = [
    ("budget_alert_threshold", str(BUDGET_ALERT_THRESHOLD)),
    ("upcoming_reminder_days", str(UPCOMING_REMINDER_DAYS)),
]
