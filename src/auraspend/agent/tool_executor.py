"""Dispatches tool calls registered in a :class:`ToolRegistry` and wraps errors."""

import inspect
import logging
from typing import (
    Any,
    Dict,
)

from auraspend.tools import ToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutionError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""


async def execute_tool(
    registry: ToolRegistry, name: str, args: Dict[str, Any] | None = None
) -> Any:
    """
    Look up *name* in *registry* and invoke it with *args*.

    Parameters
    ----------
    registry:
        The registry holding the tool.
    name:
        The registered tool name.
    args:
        Argument mapping passed verbatim to the tool.  If *None*, an empty dict is assumed.

    Returns
    -------
    Any
        Whatever the tool returns.

    Raises
    ------
    ToolExecutionError
        If the tool is missing, its arguments are unusable, or its invocation raises an exception.
        The message is human-readable and ends up in the transcript.
    """

    if args is None:
        args = {}

    tool = registry.lookup(name)
    if tool is None:
        raise ToolExecutionError(f"Tool '{name}' is not registered.")

    problems = tool.check_arguments(args)
    if problems:
        raise ToolExecutionError(f"Invalid arguments for tool '{name}': {'; '.join(problems)}")

    try:
        logger.debug("Executing tool '%s' with args=%s", name, args)
        result = tool.invoke(args)
        if inspect.isawaitable(result):
            result = await result
        return result
    except (KeyError, TypeError) as exc:
        # Argument mismatch that slipped past the schema check.
        logger.exception("Argument error while executing tool '%s'", name)
        raise ToolExecutionError(f"Invalid arguments for tool '{name}': {exc}") from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error in tool '%s'", name)
        raise ToolExecutionError(str(exc) or f"Tool '{name}' raised {type(exc).__name__}") from exc
