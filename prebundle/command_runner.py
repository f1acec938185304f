"""Process execution for compiler invocations, with a recording variant for tests."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Sequence
import os
import shlex
import subprocess
import threading


@dataclass
class CommandResult:
    """Outcome of one compiler process."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    streamed: bool = False


class CommandError(RuntimeError):
    """Raised when a compiler process exits with a non-zero status."""

    def __init__(self, result: CommandResult):
        message = f"Command failed with exit code {result.returncode}: {format_command(result.command)}"
        if not result.streamed:
            message = f"{message}\nstdout: {result.stdout}\nstderr: {result.stderr}"
        super().__init__(message)
        self.result = result


def format_command(command: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(part)) for part in command)


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        label: str | None = None,
        stream: bool = False,
    ) -> CommandResult:
        raise NotImplementedError


class SubprocessCommandRunner(CommandRunner):
    """Runs commands through :mod:`subprocess`; failures raise :class:`CommandError`."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        label: str | None = None,
        stream: bool = False,
    ) -> CommandResult:
        merged_env: Dict[str, str] | None = None
        if env is not None:
            merged_env = os.environ.copy()
            merged_env.update(env)

        process = subprocess.run(
            [str(part) for part in command],
            cwd=str(cwd) if cwd else None,
            env=merged_env,
            capture_output=not stream,
            text=True,
            check=False,
        )
        result = CommandResult(
            command=command,
            returncode=process.returncode,
            stdout=process.stdout or "",
            stderr=process.stderr or "",
            streamed=stream,
        )
        if result.returncode != 0:
            raise CommandError(result)
        return result


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    label: str | None
    stream: bool


class RecordingCommandRunner(CommandRunner):
    """Records commands instead of executing them.

    Builds are submitted from worker threads, so appends are serialized.
    """

    def __init__(self) -> None:
        self.commands: List[RecordedCommand] = []
        self._lock = threading.Lock()

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        label: str | None = None,
        stream: bool = False,
    ) -> CommandResult:
        record = RecordedCommand(
            command=[str(part) for part in command],
            cwd=str(cwd) if cwd else None,
            label=label,
            stream=stream,
        )
        with self._lock:
            self.commands.append(record)
        return CommandResult(command=command, returncode=0, stdout="", stderr="")
