"""Tests for the finance tool catalog against the in-memory backend."""

import asyncio
from datetime import (
    date,
    timedelta,
)
from typing import (
    Any,
    Dict,
)

import pytest

from auraspend.agent.tool_executor import (
    ToolExecutionError,
    execute_tool,
)
from auraspend.finance.backend import InMemoryFinanceBackend
from auraspend.tools import ToolRegistry
from auraspend.tools.finance_tools import build_finance_registry


@pytest.fixture
def finance() -> ToolRegistry:
    return build_finance_registry(InMemoryFinanceBackend())


def run(registry: ToolRegistry, name: str, args: Dict[str, Any] | None = None) -> Any:
    return asyncio.run(execute_tool(registry, name, args))


def test_catalog_order(finance: ToolRegistry) -> None:
    assert finance.names() == [
        "getCategories",
        "addCategory",
        "updateCategory",
        "deleteCategory",
        "addMultipleCategories",
        "getRecentTransactions",
        "getTransactionsByDateRange",
        "getSpendingBreakdown",
        "getIncomeAndExpenses",
        "addTransaction",
        "updateTransaction",
        "deleteTransaction",
        "getCurrentBudget",
        "setBudget",
        "getProfile",
    ]


def test_category_lifecycle(finance: ToolRegistry) -> None:
    food = run(finance, "addCategory", {"name": "Food"})
    run(finance, "updateCategory", {"id": food["id"], "name": "Groceries"})

    assert [c["name"] for c in run(finance, "getCategories")] == ["Groceries"]
    assert run(finance, "deleteCategory", {"name": "groceries"}) == {"deleted": food["id"]}
    assert run(finance, "getCategories") == []


def test_duplicate_category_is_an_error(finance: ToolRegistry) -> None:
    run(finance, "addCategory", {"name": "Food"})

    with pytest.raises(ToolExecutionError, match="already exists"):
        run(finance, "addCategory", {"name": "food"})


def test_add_multiple_categories_reports_per_item(finance: ToolRegistry) -> None:
    run(finance, "addCategory", {"name": "Food"})

    results = run(finance, "addMultipleCategories", {"categories": ["Food", "Transport"]})

    assert [(r["name"], r["success"]) for r in results] == [("Food", False), ("Transport", True)]
    assert "already exists" in results[0]["error"]


def test_delete_category_id_and_name_must_match(finance: ToolRegistry) -> None:
    food = run(finance, "addCategory", {"name": "Food"})
    run(finance, "addCategory", {"name": "Rent"})

    with pytest.raises(ToolExecutionError, match="do not match"):
        run(finance, "deleteCategory", {"id": food["id"], "name": "Rent"})
    with pytest.raises(ToolExecutionError, match="Either id or name"):
        run(finance, "deleteCategory", {})


def test_transactions_and_reports(finance: ToolRegistry) -> None:
    food = run(finance, "addCategory", {"name": "Food"})
    run(finance, "addTransaction", {"amount": 2000, "occurred_at": "2024-03-01"})
    lunch = run(
        finance,
        "addTransaction",
        {"amount": -12.5, "occurred_at": "2024-03-02", "category_id": food["id"]},
    )
    run(finance, "addTransaction", {"amount": -40, "occurred_at": "2024-03-03", "merchant": "Gas"})
    run(finance, "addTransaction", {"amount": -99, "occurred_at": "2024-04-01"})

    march = {"startDate": "2024-03-01", "endDate": "2024-03-31"}
    assert len(run(finance, "getTransactionsByDateRange", march)) == 3
    assert run(finance, "getIncomeAndExpenses", march) == {
        "income": 2000.0,
        "expenses": 52.5,
        "net": 1947.5,
    }
    breakdown = run(finance, "getSpendingBreakdown", march)
    assert [(e["category_name"], e["total"]) for e in breakdown] == [
        ("Uncategorized", 40.0),
        ("Food", 12.5),
    ]
    recent = run(finance, "getRecentTransactions", {"limit": 2})
    assert [t["occurred_at"] for t in recent] == ["2024-04-01", "2024-03-03"]
    assert lunch["source"] == "manual"

    updated = run(finance, "updateTransaction", {"id": lunch["id"], "note": "team lunch"})
    assert updated["note"] == "team lunch" and updated["amount"] == -12.5

    run(finance, "deleteCategory", {"id": food["id"]})
    assert run(finance, "getTransactionsByDateRange", march)[1]["category_id"] is None

    assert run(finance, "deleteTransaction", {"id": lunch["id"]}) == {"deleted": lunch["id"]}
    with pytest.raises(ToolExecutionError, match="not found"):
        run(finance, "deleteTransaction", {"id": lunch["id"]})


def test_bad_dates_are_reported(finance: ToolRegistry) -> None:
    with pytest.raises(ToolExecutionError, match="YYYY-MM-DD"):
        run(finance, "getIncomeAndExpenses", {"startDate": "March", "endDate": "2024-03-31"})
    with pytest.raises(ToolExecutionError, match="Invalid arguments"):
        run(finance, "getSpendingBreakdown", {"startDate": "2024-03-01"})


def test_budget(finance: ToolRegistry) -> None:
    assert run(finance, "getCurrentBudget") is None
    yesterday = (date.today() - timedelta(days=1)).isoformat()

    run(finance, "setBudget", {"amount": 1500, "period": "monthly", "startDate": yesterday})

    budget = run(finance, "getCurrentBudget")
    assert budget["amount"] == 1500 and budget["period"] == "monthly"
    with pytest.raises(ToolExecutionError, match="must be one of"):
        run(finance, "setBudget", {"amount": 10, "period": "weekly", "startDate": yesterday})
    with pytest.raises(ToolExecutionError, match="positive"):
        run(finance, "setBudget", {"amount": 0, "period": "yearly", "startDate": yesterday})


def test_profile(finance: ToolRegistry) -> None:
    profile = run(finance, "getProfile")

    assert profile["currency"] == "USD"
