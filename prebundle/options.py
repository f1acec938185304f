"""Layering of default, descriptor, and override build options."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, MutableMapping

from .config_loader import GlobalConfig


EffectiveOptions = Dict[str, Any]

ENVIRONMENT_DEFINES: Dict[str, str] = {
    "process.env.NODE_ENV": '"production"',
    "process.env.NODE_DEBUG": '""',
    "process.env.FORCE_SIMILAR_INSTEAD_OF_MAP": '"false"',
}


@dataclass(frozen=True, slots=True)
class Flags:
    watch: bool = False
    optimized: bool = False
    reset: bool = False

    @classmethod
    def from_args(cls, args: Iterable[str]) -> "Flags":
        tokens = [str(arg) for arg in args]
        return cls(
            watch=has_flag(tokens, "watch"),
            optimized=has_flag(tokens, "optimized"),
            reset=has_flag(tokens, "reset"),
        )


def has_flag(args: Iterable[str], name: str) -> bool:
    prefix = f"--{name}"
    return any(arg.startswith(prefix) for arg in args)


@dataclass(frozen=True, slots=True)
class BaseOptions:
    defaults: EffectiveOptions
    overrides: EffectiveOptions


def _compiler_option_hook(*, outbase: str, optimized: bool):
    def apply(options: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        options.update(
            outbase=outbase,
            log_level="error",
            legal_comments="none",
            minify_whitespace=optimized,
            minify_identifiers=False,
            minify_syntax=optimized,
        )
        return options

    return apply


def base_options(flags: Flags, *, cwd: Path, settings: GlobalConfig) -> BaseOptions:
    defaults: EffectiveOptions = {
        "silent": not flags.watch,
        "treeshake": True,
        "sourcemap": False,
        "out_dir": str(cwd / settings.output_root),
        "compiler_options": _compiler_option_hook(
            outbase=str(cwd / settings.source_root),
            optimized=flags.optimized,
        ),
        "define": dict(ENVIRONMENT_DEFINES),
    }
    overrides: EffectiveOptions = {
        "watch": flags.watch,
        "clean": False,
    }
    return BaseOptions(defaults=defaults, overrides=overrides)


def merge_layers(
    defaults: Mapping[str, Any],
    descriptor: Mapping[str, Any],
    overrides: Mapping[str, Any],
) -> EffectiveOptions:
    """Shallow merge; later layers replace whole field values."""

    return {**defaults, **descriptor, **overrides}
