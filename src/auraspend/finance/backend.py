"""
Finance data access used by the assistant's tools.

The hosted database is an external collaborator; the tools only depend on the async
:class:`FinanceBackend` protocol below.  :class:`InMemoryFinanceBackend` implements it for local
runs and tests.
"""

import logging
import uuid
from datetime import (
    date,
    datetime,
    timezone,
)
from typing import (
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Protocol,
)

from pydantic import (
    BaseModel,
    Field,
)

logger = logging.getLogger(__name__)

TransactionSource = Literal["manual", "ocr", "ai"]
BudgetPeriod = Literal["monthly", "yearly"]


class FinanceError(RuntimeError):
    """Raised for any application-level failure (unknown id, invalid value, ...)."""


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
class Category(BaseModel):
    id: str = Field(default_factory=_new_id)
    name: str
    created_at: str = Field(default_factory=_now_iso)


class Transaction(BaseModel):
    """Positive amounts are income, negative amounts are expenses."""

    id: str = Field(default_factory=_new_id)
    amount: float
    occurred_at: str
    merchant: Optional[str] = None
    category_id: Optional[str] = None
    note: Optional[str] = None
    payment_method: Optional[str] = None
    source: TransactionSource = "manual"
    currency: str = "USD"
    created_at: str = Field(default_factory=_now_iso)
    updated_at: str = Field(default_factory=_now_iso)


class Budget(BaseModel):
    id: str = Field(default_factory=_new_id)
    amount: float
    period: BudgetPeriod
    start_date: str
    created_at: str = Field(default_factory=_now_iso)


class Profile(BaseModel):
    id: str = Field(default_factory=_new_id)
    display_name: Optional[str] = None
    currency: str = "USD"
    language: Optional[str] = None


class SpendingBreakdownEntry(BaseModel):
    category_id: Optional[str]
    category_name: str
    total: float
    count: int


class IncomeAndExpenses(BaseModel):
    income: float
    expenses: float
    net: float


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------
class FinanceBackend(Protocol):
    """Async data-access contract the finance tools are written against."""

    async def get_categories(self) -> List[Category]: ...

    async def add_category(self, name: str) -> Category: ...

    async def update_category(self, category_id: str, name: str) -> Category: ...

    async def delete_category(self, category_id: str) -> None: ...

    async def get_recent_transactions(self, limit: int = 10) -> List[Transaction]: ...

    async def get_transactions_by_date_range(
        self, start_date: str, end_date: str
    ) -> List[Transaction]: ...

    async def get_spending_breakdown(
        self, start_date: str, end_date: str
    ) -> List[SpendingBreakdownEntry]: ...

    async def get_income_and_expenses(
        self, start_date: str, end_date: str
    ) -> IncomeAndExpenses: ...

    async def add_transaction(self, data: Dict[str, Any]) -> Transaction: ...

    async def update_transaction(
        self, transaction_id: str, updates: Dict[str, Any]
    ) -> Transaction: ...

    async def delete_transaction(self, transaction_id: str) -> None: ...

    async def get_current_budget(self) -> Optional[Budget]: ...

    async def set_budget(self, amount: float, period: BudgetPeriod, start_date: str) -> Budget: ...

    async def get_profile(self) -> Profile: ...


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------
def _parse_day(value: str, field: str) -> date:
    try:
        return date.fromisoformat(value[:10])
    except (TypeError, ValueError) as exc:
        raise FinanceError(f"{field} must be a date in YYYY-MM-DD format, got {value!r}") from exc


class InMemoryFinanceBackend:
    """Single-user finance store kept in process memory."""

    def __init__(self, profile: Profile | None = None):
        self._categories: Dict[str, Category] = {}
        self._transactions: Dict[str, Transaction] = {}
        self._budgets: List[Budget] = []
        self._profile = profile or Profile(display_name="AuraSpend user")

    # -- categories ------------------------------------------------------
    async def get_categories(self) -> List[Category]:
        return sorted(self._categories.values(), key=lambda c: c.name.lower())

    async def add_category(self, name: str) -> Category:
        name = (name or "").strip()
        if not name:
            raise FinanceError("Category name must not be empty")
        if any(c.name.lower() == name.lower() for c in self._categories.values()):
            raise FinanceError(f'Category "{name}" already exists')
        category = Category(name=name)
        self._categories[category.id] = category
        logger.info("Added category %s (%s)", category.name, category.id)
        return category

    async def update_category(self, category_id: str, name: str) -> Category:
        category = self._categories.get(category_id)
        if category is None:
            raise FinanceError(f'Category with ID "{category_id}" not found')
        updated = category.model_copy(update={"name": name.strip()})
        self._categories[category_id] = updated
        return updated

    async def delete_category(self, category_id: str) -> None:
        if self._categories.pop(category_id, None) is None:
            raise FinanceError(f'Category with ID "{category_id}" not found')
        # Transactions keep existing but lose their category reference.
        for tx_id, tx in self._transactions.items():
            if tx.category_id == category_id:
                self._transactions[tx_id] = tx.model_copy(update={"category_id": None})
        logger.info("Deleted category %s", category_id)

    # -- transactions ----------------------------------------------------
    def _sorted_transactions(self) -> List[Transaction]:
        return sorted(self._transactions.values(), key=lambda t: t.occurred_at, reverse=True)

    def _in_range(self, start_date: str, end_date: str) -> List[Transaction]:
        start = _parse_day(start_date, "startDate")
        end = _parse_day(end_date, "endDate")
        if end < start:
            raise FinanceError("endDate must not be before startDate")
        return [
            tx
            for tx in self._sorted_transactions()
            if start <= _parse_day(tx.occurred_at, "occurred_at") <= end
        ]

    async def get_recent_transactions(self, limit: int = 10) -> List[Transaction]:
        if limit < 1:
            raise FinanceError("limit must be a positive integer")
        return self._sorted_transactions()[:limit]

    async def get_transactions_by_date_range(
        self, start_date: str, end_date: str
    ) -> List[Transaction]:
        return self._in_range(start_date, end_date)

    async def get_spending_breakdown(
        self, start_date: str, end_date: str
    ) -> List[SpendingBreakdownEntry]:
        totals: Dict[Optional[str], SpendingBreakdownEntry] = {}
        for tx in self._in_range(start_date, end_date):
            if tx.amount >= 0:
                continue
            entry = totals.get(tx.category_id)
            if entry is None:
                category = self._categories.get(tx.category_id or "")
                entry = SpendingBreakdownEntry(
                    category_id=tx.category_id,
                    category_name=category.name if category else "Uncategorized",
                    total=0.0,
                    count=0,
                )
                totals[tx.category_id] = entry
            entry.total += -tx.amount
            entry.count += 1
        return sorted(totals.values(), key=lambda e: e.total, reverse=True)

    async def get_income_and_expenses(self, start_date: str, end_date: str) -> IncomeAndExpenses:
        income = 0.0
        expenses = 0.0
        for tx in self._in_range(start_date, end_date):
            if tx.amount >= 0:
                income += tx.amount
            else:
                expenses += -tx.amount
        return IncomeAndExpenses(income=income, expenses=expenses, net=income - expenses)

    def _check_category(self, category_id: Optional[str]) -> None:
        if category_id is not None and category_id not in self._categories:
            raise FinanceError(f'Category with ID "{category_id}" not found')

    async def add_transaction(self, data: Dict[str, Any]) -> Transaction:
        _parse_day(data.get("occurred_at", ""), "occurred_at")
        self._check_category(data.get("category_id"))
        tx = Transaction(currency=self._profile.currency, **data)
        self._transactions[tx.id] = tx
        logger.info("Added transaction %s amount=%s", tx.id, tx.amount)
        return tx

    async def update_transaction(self, transaction_id: str, updates: Dict[str, Any]) -> Transaction:
        tx = self._transactions.get(transaction_id)
        if tx is None:
            raise FinanceError(f'Transaction with ID "{transaction_id}" not found')
        if "occurred_at" in updates:
            _parse_day(updates["occurred_at"], "occurred_at")
        self._check_category(updates.get("category_id"))
        updated = tx.model_copy(update={**updates, "updated_at": _now_iso()})
        self._transactions[transaction_id] = updated
        return updated

    async def delete_transaction(self, transaction_id: str) -> None:
        if self._transactions.pop(transaction_id, None) is None:
            raise FinanceError(f'Transaction with ID "{transaction_id}" not found')

    # -- budgets / profile -----------------------------------------------
    async def get_current_budget(self) -> Optional[Budget]:
        today = datetime.now().date()
        current = [b for b in self._budgets if _parse_day(b.start_date, "startDate") <= today]
        if not current:
            return None
        return max(current, key=lambda b: (b.start_date, b.created_at))

    async def set_budget(self, amount: float, period: BudgetPeriod, start_date: str) -> Budget:
        if amount <= 0:
            raise FinanceError("Budget amount must be positive")
        _parse_day(start_date, "startDate")
        budget = Budget(amount=amount, period=period, start_date=start_date)
        self._budgets.append(budget)
        return budget

    async def get_profile(self) -> Profile:
        return self._profile
