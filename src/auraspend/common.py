"""Terminal colour helpers shared by the API launcher and the CLI."""

from enum import Enum
from typing import Any

ANSI_RESET = "\033[0m"


class AnsiColors(Enum):
    """ANSI escape codes, one per kind of output the CLI prints."""

    RED = "\033[91m"  # errors
    GREEN = "\033[92m"  # succeeded tool calls, banners
    YELLOW = "\033[33m"  # assistant replies, pending calls
    BLUE = "\033[94m"  # user prompt, executing calls
    MAGENTA = "\033[95m"  # tool-call explanations
    GREY = "\033[90m"  # tool results, cancelled calls


def colorize(text: str, color: AnsiColors) -> str:
    return f"{color.value}{text}{ANSI_RESET}"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """``print`` *text* wrapped in *color*; extra arguments go straight to ``print``."""
    print(colorize(text, color), *args, **kwargs)
