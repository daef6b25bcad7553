"""
Tool registry for AuraSpend.

A tool is an async function taking a single ``args`` mapping and returning a JSON-serializable
value, together with the name, description and parameter schema the model sees in its system
prompt.  Tools are collected into an immutable :class:`ToolRegistry` that is built once at start-up
and passed explicitly to whoever needs it (prompt builder, orchestrator, API), so tests can swap in
a registry of fakes.
"""

import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

logger = logging.getLogger(__name__)

ToolFunction = Callable[[Dict[str, Any]], Awaitable[Any]]


class ParameterSpec(BaseModel):
    """
    Information about a tool parameter.
    """

    model_config = ConfigDict(frozen=True)

    type: str
    description: str = ""
    required: bool = False
    enum: Optional[List[Any]] = None
    default: Any = None
    items: Optional[Dict[str, Any]] = None


class ToolDescriptor(BaseModel):
    """
    Schema plus implementation of a single tool.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    description: str
    parameters: Dict[str, ParameterSpec] = Field(default_factory=dict)
    invoke: ToolFunction

    def parameter_schema(self) -> Dict[str, Dict[str, Any]]:
        """Return the parameters as plain dicts, in declaration order."""
        return {
            name: spec.model_dump(exclude_none=True) for name, spec in self.parameters.items()
        }

    def check_arguments(self, args: Mapping[str, Any]) -> List[str]:
        """
        Return a list of problems with *args* (empty when the arguments look usable).

        Only required parameters and ``enum`` constraints are checked; types are left to the tool.
        """
        problems: List[str] = []
        for name, spec in self.parameters.items():
            if name not in args or args[name] is None:
                if spec.required:
                    problems.append(f"missing required parameter '{name}'")
                continue
            if spec.enum is not None and args[name] not in spec.enum:
                problems.append(f"'{name}' must be one of {spec.enum}, got {args[name]!r}")
        return problems


def define_tool(
    name: str,
    description: str,
    parameters: Mapping[str, ParameterSpec] | None = None,
) -> Callable[[ToolFunction], ToolDescriptor]:
    """
    Turn an async function into a :class:`ToolDescriptor`.

    The function is wrapped as a decorator, so it can be used like this:
        @define_tool("getCategories", "Get all categories for the current user")
        async def get_categories(args):
            return await backend.get_categories()

    Parameters
    ----------
    name: str
        The name of the tool, exactly as the model must spell it.
    description: str
        Human-readable description shown to the model.
    parameters: Mapping[str, ParameterSpec], optional
        Ordered parameter declarations.
    Returns
    -------
    Callable
        A decorator returning the descriptor (not the function).
    """

    def wrapper(fn: ToolFunction) -> ToolDescriptor:
        return ToolDescriptor(
            name=name,
            description=description,
            parameters=dict(parameters or {}),
            invoke=fn,
        )

    return wrapper


class ToolRegistry:
    """Immutable, ordered mapping of tool name -> :class:`ToolDescriptor`."""

    def __init__(self, tools: Iterable[ToolDescriptor] = ()):
        entries: Dict[str, ToolDescriptor] = {}
        for tool in tools:
            if tool.name in entries:
                raise ValueError(f"Tool '{tool.name}' is already registered.")
            logger.debug("Registering tool '%s'", tool.name)
            entries[tool.name] = tool
        self._tools: Tuple[ToolDescriptor, ...] = tuple(entries.values())
        self._by_name: Mapping[str, ToolDescriptor] = entries

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def lookup(self, name: str) -> ToolDescriptor | None:
        """Return the descriptor registered under *name*, or ``None``."""
        return self._by_name.get(name)

    def list(self) -> Tuple[ToolDescriptor, ...]:
        """Return every descriptor in declaration order."""
        return self._tools

    def is_valid_name(self, name: str) -> bool:
        """Pure membership check used to decide whether a parsed call can be staged."""
        return name in self._by_name

    def names(self) -> List[str]:
        return [tool.name for tool in self._tools]

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name
