"""Translation of effective build options into compiler invocations."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence

from .command_runner import CommandResult, CommandRunner
from .entries import DEFAULT_FORMAT, as_list, format_spec


# Option keys translated explicitly by Compiler.command_for; anything else is passed through.
CONSUMED_KEYS = frozenset(
    {
        "entry",
        "format",
        "out_dir",
        "out_extension",
        "treeshake",
        "sourcemap",
        "target",
        "define",
        "external",
        "alias",
        "compiler_options",
        "watch",
        "silent",
        "clean",
    }
)


def _flag_name(key: str) -> str:
    return key.replace("_", "-")


def render_option_flags(options: Mapping[str, Any]) -> List[str]:
    """Render compiler options as ``--flag``, ``--flag=value`` or ``--flag:key=value`` arguments."""

    flags: List[str] = []
    for key, value in options.items():
        name = _flag_name(key)
        if value is None or value is False:
            continue
        if value is True:
            flags.append(f"--{name}")
        elif isinstance(value, Mapping):
            flags.extend(f"--{name}:{item}={setting}" for item, setting in value.items())
        elif isinstance(value, (list, tuple)):
            flags.append(f"--{name}={','.join(str(item) for item in value)}")
        else:
            flags.append(f"--{name}={value}")
    return flags


def entry_arguments(entry: Any) -> List[str]:
    if isinstance(entry, Mapping):
        return [f"{name}={path}" for name, path in entry.items()]
    return [str(path) for path in as_list(entry)]


class Compiler:
    """Runs one compiler process per output format of an options mapping."""

    def __init__(self, *, runner: CommandRunner, executable: str = "esbuild", cwd: Path | None = None) -> None:
        self._runner = runner
        self._executable = executable
        self._cwd = cwd

    def command_for(self, options: Mapping[str, Any], format_tag: str) -> List[str]:
        spec = format_spec(format_tag)
        compiler_format = spec.compiler_format if spec else format_tag

        command: List[str] = [self._executable, *entry_arguments(options.get("entry")), "--bundle"]
        command.append(f"--format={compiler_format}")
        if options.get("out_dir"):
            command.append(f"--outdir={options['out_dir']}")

        out_extension: Mapping[str, str] | None = options.get("out_extension")
        if out_extension:
            command.extend(f"--out-extension:{source}={target}" for source, target in out_extension.items())
        elif spec is not None:
            command.append(f"--out-extension:.js={spec.extension}")

        if options.get("treeshake"):
            command.append("--tree-shaking=true")
        if options.get("sourcemap"):
            command.append("--sourcemap")
        targets = as_list(options.get("target"))
        if targets:
            command.append(f"--target={','.join(str(target) for target in targets)}")
        for name, value in (options.get("define") or {}).items():
            command.append(f"--define:{name}={value}")
        for package in as_list(options.get("external")):
            command.append(f"--external:{package}")
        for name, replacement in (options.get("alias") or {}).items():
            command.append(f"--alias:{name}={replacement}")

        command.extend(
            render_option_flags({key: value for key, value in options.items() if key not in CONSUMED_KEYS})
        )

        hook: Callable[[Dict[str, Any]], Any] | None = options.get("compiler_options")
        if hook is not None:
            nested: Dict[str, Any] = {}
            returned = hook(nested)
            if isinstance(returned, Mapping):
                nested = dict(returned)
            command.extend(render_option_flags(nested))

        if options.get("watch"):
            command.append("--watch")
        return command

    def build(self, options: Mapping[str, Any]) -> List[CommandResult]:
        results: List[CommandResult] = []
        formats: Sequence[str] = [str(tag) for tag in as_list(options.get("format"))] or [DEFAULT_FORMAT]
        stream = not options.get("silent", False)
        for format_tag in formats:
            results.append(
                self._runner.run(
                    self.command_for(options, format_tag),
                    cwd=self._cwd,
                    label=f"build {format_tag}",
                    stream=stream,
                )
            )
        return results
