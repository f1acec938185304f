"""Expansion of descriptors into (source file, format) entries and their artifact paths."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping
import posixpath


@dataclass(frozen=True, slots=True)
class FormatSpec:
    compiler_format: str
    condition: str
    extension: str


_CJS = FormatSpec(compiler_format="cjs", condition="require", extension=".js")
_ESM = FormatSpec(compiler_format="esm", condition="module", extension=".mjs")
_IIFE = FormatSpec(compiler_format="iife", condition="module", extension=".js")

DEFAULT_FORMAT = "cjs"

FORMATS: Mapping[str, FormatSpec] = MappingProxyType(
    {
        "cjs": _CJS,
        "commonjs": _CJS,
        "esm": _ESM,
        "module": _ESM,
        "iife": _IIFE,
        "immediately-invoked": _IIFE,
    }
)


def format_spec(tag: str | None) -> FormatSpec | None:
    return FORMATS.get(tag)


@dataclass(frozen=True, slots=True)
class Entry:
    file: str
    format: str | None


@dataclass(frozen=True, slots=True)
class Artifact:
    output_key: str
    extension: str
    condition: str


def as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def entry_files(entry: Any) -> List[str]:
    """Source paths of a descriptor ``entry`` field; mapping keys are dropped."""

    if not entry:
        return []
    if isinstance(entry, Mapping):
        return [str(value) for value in entry.values()]
    return [str(value) for value in as_list(entry)]


def resolve_entries(descriptors: Iterable[Mapping[str, Any]]) -> List[Entry]:
    entries: List[Entry] = []
    for descriptor in descriptors:
        files = entry_files(descriptor.get("entry"))
        # Without a format the compiler default applies; such entries still get stubs.
        formats: List[str | None] = [str(tag) for tag in as_list(descriptor.get("format"))] or [None]
        for file in files:
            entries.extend(Entry(file=file, format=tag) for tag in formats)
    return entries


def _logical(path: str) -> PurePosixPath:
    logical = PurePosixPath(posixpath.normpath(path.replace("\\", "/")))
    if logical.is_absolute():
        return logical.relative_to(logical.anchor)
    return logical


def output_key(file: str, *, source_root: str = "./src", output_root: str = "./dist") -> str:
    """Rewrite ``file`` from the source root to the output root, without its extension.

    ``./src/foo/bar.ts`` becomes ``./dist/foo/bar``; the result always uses
    forward slashes.
    """

    path = _logical(file)
    source_parts = _logical(source_root).parts
    parent_parts = path.parent.parts
    if parent_parts[: len(source_parts)] == source_parts:
        parent_parts = _logical(output_root).parts + parent_parts[len(source_parts):]
    key = posixpath.normpath(posixpath.join(*parent_parts, path.stem)) if parent_parts else path.stem
    return f"./{key}"


def entry_to_artifact(
    entry: Entry,
    *,
    source_root: str = "./src",
    output_root: str = "./dist",
) -> Artifact | None:
    """Manifest coordinates of ``entry``; ``None`` for formats without a condition."""

    spec = format_spec(entry.format)
    if spec is None:
        return None
    return Artifact(
        output_key=output_key(entry.file, source_root=source_root, output_root=output_root),
        extension=spec.extension,
        condition=spec.condition,
    )
