"""
Finance tools exposed to the assistant (categories, transactions, budgets, profile).

Every tool is a thin adapter from the model's ``parameters`` object onto :class:`FinanceBackend`,
returning plain JSON-ready dicts/lists.  The catalog order below is the order the tools are listed
in the system prompt.
"""

from typing import (
    Any,
    Dict,
    List,
)

from auraspend.finance.backend import (
    FinanceBackend,
    FinanceError,
)
from auraspend.tools import (
    ParameterSpec,
    ToolDescriptor,
    ToolRegistry,
    define_tool,
)

_DATE_RANGE = {
    "startDate": ParameterSpec(
        type="string", description="Start date in YYYY-MM-DD format", required=True
    ),
    "endDate": ParameterSpec(
        type="string", description="End date in YYYY-MM-DD format", required=True
    ),
}

_TRANSACTION_OPTIONAL_FIELDS = ("merchant", "category_id", "note", "payment_method")


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if hasattr(value, "model_dump"):
        return value.model_dump()
    return value


def category_tools(backend: FinanceBackend) -> List[ToolDescriptor]:
    """Tools operating on the user's categories."""

    @define_tool("getCategories", "Get all categories for the current user")
    async def get_categories(args: Dict[str, Any]) -> Any:
        return _dump(await backend.get_categories())

    @define_tool(
        "addCategory",
        "Add a new category for the current user",
        {
            "name": ParameterSpec(
                type="string", description="The name of the category to add", required=True
            )
        },
    )
    async def add_category(args: Dict[str, Any]) -> Any:
        return _dump(await backend.add_category(args["name"]))

    @define_tool(
        "updateCategory",
        "Update an existing category name",
        {
            "id": ParameterSpec(
                type="string", description="The ID of the category to update", required=True
            ),
            "name": ParameterSpec(
                type="string", description="The new name for the category", required=True
            ),
        },
    )
    async def update_category(args: Dict[str, Any]) -> Any:
        return _dump(await backend.update_category(args["id"], args["name"]))

    @define_tool(
        "deleteCategory",
        "Delete a category by ID or name (transactions referencing it lose their category)",
        {
            "id": ParameterSpec(
                type="string",
                description="The ID of the category to delete (optional, use if available)",
            ),
            "name": ParameterSpec(
                type="string",
                description="The name of the category to delete (use if ID is not available)",
            ),
        },
    )
    async def delete_category(args: Dict[str, Any]) -> Any:
        category_id = args.get("id")
        name = args.get("name")

        if category_id and name:
            categories = await backend.get_categories()
            by_id = next((c for c in categories if c.id == category_id), None)
            by_name = next((c for c in categories if c.name.lower() == name.lower()), None)
            if by_id is None:
                raise FinanceError(f'Category with ID "{category_id}" not found')
            if by_name is None:
                raise FinanceError(f'Category with name "{name}" not found')
            if by_id.id != by_name.id:
                raise FinanceError(
                    "ID and name do not match the same category. "
                    f'ID refers to "{by_id.name}" but name refers to "{by_name.name}"'
                )
        elif not category_id and name:
            categories = await backend.get_categories()
            match = next((c for c in categories if c.name.lower() == name.lower()), None)
            if match is None:
                raise FinanceError(f'Category "{name}" not found')
            category_id = match.id

        if not category_id:
            raise FinanceError("Either id or name must be provided")

        await backend.delete_category(category_id)
        return {"deleted": category_id}

    @define_tool(
        "addMultipleCategories",
        "Add multiple categories at once",
        {
            "categories": ParameterSpec(
                type="array",
                items={"type": "string"},
                description=(
                    "Array of category names to add "
                    '(e.g., ["Food", "Transport", "Entertainment"])'
                ),
                required=True,
            )
        },
    )
    async def add_multiple_categories(args: Dict[str, Any]) -> Any:
        names = args.get("categories")
        if not isinstance(names, list):
            raise FinanceError("categories must be an array of strings")
        results = []
        for name in names:
            try:
                category = await backend.add_category(name)
                results.append({"name": name, "success": True, "result": _dump(category)})
            except FinanceError as exc:
                results.append({"name": name, "success": False, "error": str(exc)})
        return results

    return [get_categories, add_category, update_category, delete_category, add_multiple_categories]


def transaction_tools(backend: FinanceBackend) -> List[ToolDescriptor]:
    """Tools reading and writing transactions and budgets."""

    @define_tool(
        "getRecentTransactions",
        "Get recent transactions for the current user",
        {
            "limit": ParameterSpec(
                type="number",
                description="Maximum number of transactions to fetch (default: 10)",
                default=10,
            )
        },
    )
    async def get_recent_transactions(args: Dict[str, Any]) -> Any:
        limit = args.get("limit")
        return _dump(await backend.get_recent_transactions(int(limit) if limit else 10))

    @define_tool(
        "getTransactionsByDateRange", "Get transactions within a specific date range", _DATE_RANGE
    )
    async def get_transactions_by_date_range(args: Dict[str, Any]) -> Any:
        return _dump(
            await backend.get_transactions_by_date_range(args["startDate"], args["endDate"])
        )

    @define_tool(
        "getSpendingBreakdown", "Get spending breakdown by category for a date range", _DATE_RANGE
    )
    async def get_spending_breakdown(args: Dict[str, Any]) -> Any:
        return _dump(await backend.get_spending_breakdown(args["startDate"], args["endDate"]))

    @define_tool(
        "getIncomeAndExpenses", "Get total income and expenses for a date range", _DATE_RANGE
    )
    async def get_income_and_expenses(args: Dict[str, Any]) -> Any:
        return _dump(await backend.get_income_and_expenses(args["startDate"], args["endDate"]))

    @define_tool(
        "addTransaction",
        "Add a new transaction",
        {
            "amount": ParameterSpec(
                type="number",
                description="Transaction amount (positive for income, negative for expense)",
                required=True,
            ),
            "occurred_at": ParameterSpec(
                type="string",
                description="Date when the transaction occurred (ISO format)",
                required=True,
            ),
            "merchant": ParameterSpec(type="string", description="Merchant name"),
            "category_id": ParameterSpec(type="string", description="Category ID (optional)"),
            "note": ParameterSpec(type="string", description="Additional note (optional)"),
            "payment_method": ParameterSpec(
                type="string", description="Payment method (optional)"
            ),
            "source": ParameterSpec(
                type="string",
                enum=["manual", "ocr", "ai"],
                description="Source of transaction (default: manual)",
            ),
        },
    )
    async def add_transaction(args: Dict[str, Any]) -> Any:
        data: Dict[str, Any] = {
            "amount": args["amount"],
            "occurred_at": args["occurred_at"],
            "source": args.get("source") or "manual",
        }
        for field in _TRANSACTION_OPTIONAL_FIELDS:
            if args.get(field) is not None:
                data[field] = args[field]
        return _dump(await backend.add_transaction(data))

    @define_tool(
        "updateTransaction",
        "Update an existing transaction",
        {
            "id": ParameterSpec(
                type="string", description="Transaction ID to update", required=True
            ),
            "amount": ParameterSpec(type="number", description="New transaction amount (optional)"),
            "occurred_at": ParameterSpec(type="string", description="New date (optional)"),
            "merchant": ParameterSpec(type="string", description="New merchant name (optional)"),
            "category_id": ParameterSpec(type="string", description="New category ID (optional)"),
            "note": ParameterSpec(type="string", description="New note (optional)"),
            "payment_method": ParameterSpec(
                type="string", description="New payment method (optional)"
            ),
        },
    )
    async def update_transaction(args: Dict[str, Any]) -> Any:
        updates = {
            field: args[field]
            for field in ("amount", "occurred_at", *_TRANSACTION_OPTIONAL_FIELDS)
            if args.get(field) is not None
        }
        return _dump(await backend.update_transaction(args["id"], updates))

    @define_tool(
        "deleteTransaction",
        "Delete a transaction",
        {"id": ParameterSpec(type="string", description="Transaction ID to delete", required=True)},
    )
    async def delete_transaction(args: Dict[str, Any]) -> Any:
        await backend.delete_transaction(args["id"])
        return {"deleted": args["id"]}

    @define_tool("getCurrentBudget", "Get the current budget for the user")
    async def get_current_budget(args: Dict[str, Any]) -> Any:
        return _dump(await backend.get_current_budget())

    @define_tool(
        "setBudget",
        "Set or update the budget",
        {
            "amount": ParameterSpec(type="number", description="Budget amount", required=True),
            "period": ParameterSpec(
                type="string",
                enum=["monthly", "yearly"],
                description="Budget period",
                required=True,
            ),
            "startDate": ParameterSpec(
                type="string", description="Start date in YYYY-MM-DD format", required=True
            ),
        },
    )
    async def set_budget(args: Dict[str, Any]) -> Any:
        return _dump(await backend.set_budget(args["amount"], args["period"], args["startDate"]))

    return [
        get_recent_transactions,
        get_transactions_by_date_range,
        get_spending_breakdown,
        get_income_and_expenses,
        add_transaction,
        update_transaction,
        delete_transaction,
        get_current_budget,
        set_budget,
    ]


def profile_tools(backend: FinanceBackend) -> List[ToolDescriptor]:
    @define_tool("getProfile", "Get the current user profile")
    async def get_profile(args: Dict[str, Any]) -> Any:
        return _dump(await backend.get_profile())

    return [get_profile]


def build_finance_registry(backend: FinanceBackend) -> ToolRegistry:
    """Return the full catalog bound to *backend*."""
    return ToolRegistry(
        [*category_tools(backend), *transaction_tools(backend), *profile_tools(backend)]
    )
