"""Console output and interactive prompts.

Reports go to stdout; log records go to stderr through loguru. Prompts read
from stdin and treat end-of-input as the default answer, so unattended runs
never hang on a question.
"""

from __future__ import annotations

from typing import Iterable

RULE = "=" * 44


def print_header(title: str) -> None:
    print("")
    print(RULE)
    print(title)
    print(RULE)


def print_field(label: str, value: object, width: int = 18) -> None:
    print(f"{label + ':':<{width}} {value}")


def print_lines(lines: Iterable[str], indent: str = "  ") -> None:
    for line in lines:
        print(f"{indent}{line}")


def ask(prompt: str, default: str = "") -> str:
    """Read one line of input, returning default on empty input or EOF."""
    try:
        answer = input(prompt).strip()
    except EOFError:
        print("")
        return default
    return answer or default


def confirm(message: str, default: bool = False) -> bool:
    default_str = "Y/n" if default else "y/N"
    answer = ask(f"{message} [{default_str}]: ").lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def confirm_typed(message: str, expected: str = "yes") -> bool:
    """Require the operator to type an exact word, e.g. for irreversible actions."""
    return ask(f"{message} Type '{expected}' to continue: ") == expected


def choose(message: str, options: dict[str, str], default: str) -> str:
    """Ask until one of the option keys is entered; empty input picks default."""
    for key, label in options.items():
        print(f"  {key}) {label}")
    while True:
        answer = ask(f"{message} [{default}]: ", default)
        if answer in options:
            return answer
        print(f"Invalid choice: {answer!r}")
