"""Terminal helpers shared by the CLI and the API launcher."""

from enum import Enum
from typing import Any

ANSI_RESET = "\033[0m"


class AnsiColors(str, Enum):
    """ANSI colour codes used for CLI output."""

    RED = "\033[91m"  # errors
    GREEN = "\033[92m"  # status, tool usage
    YELLOW = "\033[33m"  # agent replies
    BLUE = "\033[94m"  # prompts
    CYAN = "\033[96m"  # build summary


def paint(text: str, color: AnsiColors) -> str:
    """Wrap *text* in *color* and a reset code."""
    return f"{color.value}{text}{ANSI_RESET}"


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    Print text in color.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        kwargs: Additional keyword arguments for print
    """
    print(paint(text, color), *args, **kwargs)
