"""Leveled console output."""
from __future__ import annotations

import sys


class Console:
    """Writes progress lines to stdout and errors to stderr.

    Levels: none < error < info < debug
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(self, level: str = "info"):
        if level not in self.LEVELS:
            raise ValueError(f"Unknown log level '{level}'. Expected one of: {', '.join(self.LEVELS)}")
        self.level_name = level
        self.level = self.LEVELS[level]

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(message)

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[ERROR] {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}")
