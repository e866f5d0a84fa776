"""
Command Line Parser

Turns text such as ``hset htable hkey1 100`` into an Invocation for the
command line driver.
"""

import shlex
from typing import Any

from .commands import Invocation


class CommandLineParser:
    """
    Parser for whitespace separated commands.

    Format:
        <command> <key> [ARGS...]

    Quoting follows shell rules, so ``set greeting "Hi man"`` has two
    arguments. Arguments that look like integers or floats are converted.
    """

    def parse(self, data: str) -> Invocation:
        """
        Parse a command string.

        Args:
            data: Raw command text

        Returns:
            Invocation with converted arguments

        Raises:
            ValueError: If the text is empty or has no key

        Examples:
            >>> parser = CommandLineParser()
            >>> inv = parser.parse("set key1 42")
            >>> inv.command, inv.args
            ('set', ('key1', 42))
        """
        parts = shlex.split(data.strip())
        if not parts:
            raise ValueError("empty command")
        if len(parts) < 2:
            raise ValueError(f"'{parts[0]}' needs at least a key")

        command, key, *rest = parts
        return Invocation(command=command, args=(key, *(self._convert(v) for v in rest)))

    def _convert(self, value: str) -> Any:
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return value

    def format_result(self, command: str, args: tuple, result: Any) -> str:
        """Render one result line, e.g. ``get ('key1',) => '42'``."""
        return f"{command} {args!r} => {result!r}"
