"""Command line entry point for the prebundle tool."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable
import sys
import traceback

from .build import BuildEngine
from .command_runner import SubprocessCommandRunner
from .compiler import Compiler
from .config_loader import ProjectConfiguration
from .console import Console
from .options import Flags


def run(argv: Iterable[str], workspace: Path) -> None:
    flags = Flags.from_args(argv)
    configuration = ProjectConfiguration.from_directory(workspace)
    settings = configuration.global_config
    console = Console(settings.log_level)
    console.debug(f"Loaded {len(configuration.descriptors)} build descriptor(s) from {workspace}")

    compiler = Compiler(runner=SubprocessCommandRunner(), executable=settings.compiler, cwd=workspace)
    engine = BuildEngine(
        configuration=configuration,
        compiler=compiler,
        console=console,
        workspace=workspace,
    )
    engine.run(flags)


def main(argv: Iterable[str] | None = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        run(args, Path.cwd())
    except Exception:
        try:
            traceback.print_exc(file=sys.stderr)
        except Exception:  # pragma: no cover - stderr unavailable
            pass
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
