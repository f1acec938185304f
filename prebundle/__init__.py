"""Multi-format build orchestration with manifest export synthesis."""
from __future__ import annotations

from .cli import main

__all__ = ["main"]
