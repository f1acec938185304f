"""Orchestration of the multi-format build, type stubs, and manifest exports."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Callable, Iterable, List, Sequence
import os
import shutil

from .compiler import Compiler
from .config_loader import ProjectConfiguration
from .console import Console
from .entries import Entry, as_list, resolve_entries
from .extra_builds import ExtraBuild, extra_builds, prebuilt_manifest_entries
from .manifest import update_manifest
from .options import EffectiveOptions, Flags, base_options, merge_layers
from .stubs import write_stub

MANIFEST_NAME = "package.json"


@dataclass(slots=True)
class BuildPlan:
    flags: Flags
    output_dir: Path
    tasks: List[EffectiveOptions]
    entries: List[Entry]
    manifest_entries: List[Entry]
    extra: List[ExtraBuild]


def empty_dir(path: Path) -> None:
    """Remove everything inside ``path``, creating it if missing."""

    if not path.exists():
        path.mkdir(parents=True)
        return
    for child in path.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def run_joined(tasks: Sequence[Callable[[], Any]]) -> None:
    """Run ``tasks`` concurrently and wait for all of them.

    The first failure is re-raised once every task has finished.
    """

    if not tasks:
        return
    with ThreadPoolExecutor(max_workers=len(tasks)) as executor:
        futures = [executor.submit(task) for task in tasks]
        for future in as_completed(futures):
            future.result()


class BuildEngine:
    def __init__(
        self,
        *,
        configuration: ProjectConfiguration,
        compiler: Compiler,
        console: Console,
        workspace: Path,
    ) -> None:
        self._configuration = configuration
        self._settings = configuration.global_config
        self._compiler = compiler
        self._console = console
        self._workspace = workspace

    def plan(self, flags: Flags) -> BuildPlan:
        layers = base_options(flags, cwd=self._workspace, settings=self._settings)
        descriptors = self._configuration.descriptors
        tasks: List[EffectiveOptions] = []
        for descriptor in descriptors:
            effective = merge_layers(layers.defaults, descriptor, layers.overrides)
            formats = as_list(effective.get("format"))
            if not formats:
                tasks.append(effective)
            # esbuild takes a single output format per process.
            for format_tag in formats:
                tasks.append({**effective, "format": [format_tag]})

        entries = resolve_entries(descriptors)
        return BuildPlan(
            flags=flags,
            output_dir=self._workspace / self._settings.output_root,
            tasks=tasks,
            entries=entries,
            manifest_entries=[*entries, *prebuilt_manifest_entries()],
            extra=extra_builds(self._settings, cwd=self._workspace),
        )

    def execute(self, plan: BuildPlan) -> None:
        if plan.flags.reset:
            self._console.debug(f"Emptying {plan.output_dir}")
            empty_dir(plan.output_dir)

        self._console.debug(f"Running {len(plan.tasks)} build task(s)")
        run_joined([partial(self._compiler.build, options) for options in plan.tasks])

        post: List[Callable[[], Any]] = []
        if not plan.flags.optimized:
            post.extend(self._stub_tasks(entry.file for entry in plan.entries))
        post.append(partial(self._write_manifest, plan.manifest_entries))
        run_joined(post)

        for extra in plan.extra:
            self._console.debug(f"Running {extra.name} build")
            self._compiler.build(extra.options)
            if extra.stub_entries and not plan.flags.optimized:
                run_joined(self._stub_tasks(extra.stub_entries))

        if os.environ.get("CI") != "true":
            self._console.info("done")

    def run(self, flags: Flags) -> None:
        self.execute(self.plan(flags))

    def _stub_tasks(self, files: Iterable[str]) -> List[Callable[[], Any]]:
        unique = dict.fromkeys(files)
        return [
            partial(
                write_stub,
                file,
                cwd=self._workspace,
                source_root=self._settings.source_root,
                output_root=self._settings.output_root,
            )
            for file in unique
        ]

    def _write_manifest(self, entries: List[Entry]) -> None:
        path = self._workspace / MANIFEST_NAME
        written = update_manifest(
            path,
            entries,
            source_root=self._settings.source_root,
            output_root=self._settings.output_root,
            preserve_foreign=self._settings.preserve_foreign_exports,
        )
        if written:
            self._console.debug(f"Updated exports in {path}")
        else:
            self._console.debug(f"Left {path} unchanged")
