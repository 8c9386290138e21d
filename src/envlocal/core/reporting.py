"""
Progress output for capture and inject.

All lines go to stderr so that ``envlocal inject`` can print exports on
stdout.
"""

from typing import Callable

from rich.console import Console
from rich.markup import escape


LOG_PREFIX = "[serverless-env-local]"

console = Console(stderr=True)

Log = Callable[[str], None]


def log(message: str) -> None:
    console.print(f"[cyan]{escape(LOG_PREFIX)}[/cyan] {escape(message)}")


def warn(message: str) -> None:
    console.print(f"[yellow]{escape(LOG_PREFIX)}[/yellow] {escape(message)}")


def error(message: str) -> None:
    console.print(f"[red]{escape(LOG_PREFIX)}[/red] {escape(message)}")
