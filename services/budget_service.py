import logging

from database.db_manager import DatabaseManager
from database.budget_dao import BudgetDAO
from database.transaction_dao import TransactionDAO
from models.budget import Budget, BudgetItem, classify
from utils.constants import BUDGET_ALERT_THRESHOLD, BUDGET_STATUSES, BUDGET_TYPES
from utils.currency import round_money
from utils.date_helpers import format_date, require_date, today
from utils.errors import NotFoundError, TrackingRejected

logger = logging.getLogger("bizledger.budget")

_UNSET = object()


class BudgetService:
    """Budgets and their items.

    ``total_budget`` and ``total_spent`` are never recomputed: every item
    mutation applies the same delta to the item and to its budget inside one
    atomic block, so the totals always equal the sums over the items.
    """

    def __init__(
        self,
        db: DatabaseManager,
        budget_dao: BudgetDAO,
        tx_dao: TransactionDAO,
    ):
        self._db = db
        self._dao = budget_dao
        self._tx_dao = tx_dao

    # ── Budgets ──────────────────────────────────────────────────────────────

    def get_budget(self, budget_id: int) -> Budget:
        budget = self._dao.get_by_id(budget_id)
        if budget is None:
            raise NotFoundError("Budget", budget_id)
        return budget

    def get_budgets(
        self,
        tenant_id: str,
        budget_type: str | None = None,
        status: str | None = None,
        active_on=None,
    ) -> list[Budget]:
        active = format_date(require_date(active_on)) if active_on else None
        return self._dao.get_all(tenant_id, budget_type, status, active)

    def create_budget(
        self,
        tenant_id: str,
        name: str,
        budget_type: str,
        start_date,
        end_date,
        items=(),
        description: str = "",
        status: str = "active",
    ) -> Budget:
        """Create a budget; each entry of ``items`` is a dict of create_item() kwargs."""
        fields = self._validate_budget(name, budget_type, start_date, end_date, status)
        with self._db.atomic():
            budget = self._dao.create(tenant_id, description=description.strip(), **fields)
            for item in items:
                self.create_item(budget.id, **item)
            budget = self.get_budget(budget.id)
        logger.info("Created budget %s '%s' with %d items", budget.id, budget.name, len(budget.items))
        return budget

    def update_budget(
        self,
        budget_id: int,
        name: str,
        budget_type: str,
        start_date,
        end_date,
        status: str = "active",
        description: str = "",
    ) -> Budget:
        fields = self._validate_budget(name, budget_type, start_date, end_date, status)
        with self._db.atomic():
            self.get_budget(budget_id)
            return self._dao.update(budget_id, description=description.strip(), **fields)

    def delete_budget(self, budget_id: int):
        with self._db.atomic():
            self.get_budget(budget_id)
            self._dao.delete(budget_id)

    # ── Items ────────────────────────────────────────────────────────────────

    def get_item(self, item_id: int) -> BudgetItem:
        item = self._dao.get_item(item_id)
        if item is None:
            raise NotFoundError("Budget item", item_id)
        return item

    def create_item(
        self,
        budget_id: int,
        name: str,
        amount: float,
        category: str | None = None,
        notes: str | None = None,
    ) -> BudgetItem:
        name = self._validate_name(name, "Item name")
        amount = self._validate_amount(amount)
        with self._db.atomic():
            self.get_budget(budget_id)
            item = self._dao.create_item(budget_id, name, amount, category, notes)
            self._dao.adjust_totals(budget_id, budget_delta=amount)
        return item

    def update_item(
        self,
        item_id: int,
        name: str | None = None,
        amount: float | None = None,
        spent: float | None = None,
        category=_UNSET,
        notes=_UNSET,
    ) -> BudgetItem:
        """Partial update; only the arguments given are changed."""
        with self._db.atomic():
            item = self.get_item(item_id)
            new_name = self._validate_name(name, "Item name") if name is not None else item.name
            new_amount = self._validate_amount(amount) if amount is not None else item.amount
            if spent is not None and spent < 0:
                raise ValueError("Spent amount cannot be negative.")
            new_spent = round_money(spent) if spent is not None else item.spent
            updated = self._dao.update_item(
                item_id,
                new_name,
                new_amount,
                new_spent,
                item.category if category is _UNSET else category,
                item.notes if notes is _UNSET else notes,
            )
            amount_delta = round_money(new_amount - item.amount)
            spent_delta = round_money(new_spent - item.spent)
            if amount_delta or spent_delta:
                self._dao.adjust_totals(item.budget_id, amount_delta, spent_delta)
        return updated

    def delete_item(self, item_id: int):
        with self._db.atomic():
            item = self.get_item(item_id)
            self._dao.delete_item(item_id)
            self._dao.adjust_totals(item.budget_id, -item.amount, -item.spent)

    def track_spend(
        self,
        item_id: int,
        transaction_id: int,
        amount: float | None = None,
    ) -> BudgetItem:
        """Count an expense transaction against a budget item.

        ``amount`` defaults to the transaction amount and may not exceed it.
        """
        with self._db.atomic():
            item = self.get_item(item_id)
            budget = self.get_budget(item.budget_id)
            tx = self._tx_dao.get_by_id(transaction_id)
            if tx is None or tx.tenant_id != budget.tenant_id:
                raise NotFoundError("Transaction", transaction_id)
            if tx.type != "expense":
                raise TrackingRejected(
                    "Only expense transactions can be tracked against a budget."
                )
            amount = self._validate_amount(tx.amount if amount is None else amount)
            if amount > tx.amount:
                raise TrackingRejected(
                    f"Cannot track {amount:.2f} against transaction {tx.id} of {tx.amount:.2f}."
                )
            if not self._tx_dao.set_budget_item(tx.id, item.id):
                raise TrackingRejected(
                    f"Transaction {tx.id} is already tracked against a budget item."
                )
            updated = self._dao.add_spent(item.id, amount)
            self._dao.adjust_totals(item.budget_id, spent_delta=amount)
        logger.debug("Tracked %.2f of transaction %s against item %s", amount, tx.id, item.id)
        return updated

    # ── Read-side derivations ────────────────────────────────────────────────

    def get_statistics(self, budget_id: int) -> dict:
        budget = self.get_budget(budget_id)
        items = [
            {
                "id": item.id,
                "name": item.name,
                "category": item.category,
                "amount": item.amount,
                "spent": item.spent,
                "remaining": round_money(item.remaining),
                "spent_percentage": item.percentage,
                "status": item.status,
            }
            for item in budget.items
        ]
        items.sort(key=lambda i: i["spent_percentage"], reverse=True)
        return {
            "id": budget.id,
            "name": budget.name,
            "type": budget.budget_type,
            "start_date": budget.start_date,
            "end_date": budget.end_date,
            "status": budget.status,
            "total_budget": budget.total_budget,
            "total_spent": budget.total_spent,
            "remaining_budget": round_money(budget.remaining),
            "spent_percentage": budget.percentage,
            "budget_status": budget.spend_status,
            "items": items,
        }

    def get_alerts(
        self,
        tenant_id: str,
        threshold: float = BUDGET_ALERT_THRESHOLD,
        on=None,
    ) -> list[dict]:
        """Alerts for active budgets covering ``on`` (default today)."""
        ref = format_date(require_date(on)) if on else format_date(today())
        alerts = []
        for budget in self._dao.get_all(tenant_id, status="active", active_on=ref):
            if budget.percentage >= threshold:
                alerts.append(self._alert(budget, None, budget.percentage, threshold))
            for item in budget.items:
                if item.percentage >= threshold:
                    alerts.append(self._alert(budget, item, item.percentage, threshold))
        alerts.sort(key=lambda a: (a["severity"] != "critical", -a["percent_spent"]))
        return alerts

    @staticmethod
    def _alert(budget: Budget, item: BudgetItem | None, pct: float, threshold: float) -> dict:
        if item is None:
            message = f'Budget "{budget.name}" has reached {pct:.1f}% of its total allocation'
        else:
            message = (
                f'Budget item "{item.name}" in "{budget.name}" has reached '
                f"{pct:.1f}% of its allocation"
            )
        return {
            "id": f"item-{item.id}" if item else f"budget-{budget.id}",
            "type": "budget-item" if item else "budget",
            "budget_id": budget.id,
            "budget_name": budget.name,
            "item_id": item.id if item else None,
            "item_name": item.name if item else None,
            "message": message,
            "severity": "critical" if classify(pct) == "over-budget" else "warning",
            "percent_spent": pct,
            "threshold": threshold,
        }

    # ── Validation ───────────────────────────────────────────────────────────

    def _validate_budget(self, name, budget_type, start_date, end_date, status) -> dict:
        name = self._validate_name(name, "Budget name")
        if budget_type not in BUDGET_TYPES:
            raise ValueError(f"Invalid budget type: {budget_type}")
        if status not in BUDGET_STATUSES:
            raise ValueError(f"Invalid budget status: {status}")
        start = require_date(start_date, "start date")
        end = require_date(end_date, "end date")
        if end < start:
            raise ValueError("End date must not be before the start date.")
        return {
            "name": name,
            "budget_type": budget_type,
            "start_date": format_date(start),
            "end_date": format_date(end),
            "status": status,
        }

    @staticmethod
    def _validate_name(name: str, label: str) -> str:
        if not name or not name.strip():
            raise ValueError(f"{label} cannot be empty.")
        return name.strip()

    @staticmethod
    def _validate_amount(amount: float) -> float:
        if amount is None or amount <= 0:
            raise ValueError("Amount must be positive.")
        return round_money(amount)
