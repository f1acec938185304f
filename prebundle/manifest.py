"""Synthesis of the package manifest ``exports`` map.

The manifest is read once, transformed as a plain value, and written back
with a single atomic replace.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping
import json
import os
import stat
import tempfile

from .entries import Entry, entry_to_artifact

PACKAGE_JSON_EXPORT = "./package.json"

# Conventional top-level field order applied by package.json sorting tools.
FIELD_ORDER: List[str] = [
    "$schema",
    "name",
    "displayName",
    "version",
    "private",
    "description",
    "categories",
    "keywords",
    "homepage",
    "bugs",
    "repository",
    "funding",
    "license",
    "qa",
    "author",
    "maintainers",
    "contributors",
    "publisher",
    "sideEffects",
    "type",
    "imports",
    "exports",
    "main",
    "svelte",
    "umd:main",
    "jsdelivr",
    "unpkg",
    "module",
    "source",
    "jsnext:main",
    "browser",
    "react-native",
    "types",
    "typesVersions",
    "typings",
    "style",
    "example",
    "examplestyle",
    "assets",
    "bin",
    "man",
    "directories",
    "files",
    "workspaces",
    "binary",
    "scripts",
    "betterScripts",
    "contributes",
    "activationEvents",
    "husky",
    "simple-git-hooks",
    "pre-commit",
    "commitlint",
    "lint-staged",
    "config",
    "nodemonConfig",
    "browserify",
    "babel",
    "browserslist",
    "xo",
    "prettier",
    "eslintConfig",
    "eslintIgnore",
    "npmpackagejsonlint",
    "release",
    "remarkConfig",
    "stylelint",
    "ava",
    "jest",
    "mocha",
    "nyc",
    "tap",
    "oclif",
    "resolutions",
    "dependencies",
    "devDependencies",
    "dependenciesMeta",
    "peerDependencies",
    "peerDependenciesMeta",
    "optionalDependencies",
    "bundledDependencies",
    "bundleDependencies",
    "extensionPack",
    "extensionDependencies",
    "flat",
    "packageManager",
    "engines",
    "engineStrict",
    "volta",
    "languageName",
    "os",
    "cpu",
    "preferGlobal",
    "publishConfig",
    "icon",
    "badges",
    "galleryBanner",
    "preview",
    "markdown",
]

_FIELD_RANK: Dict[str, int] = {name: index for index, name in enumerate(FIELD_ORDER)}

_SORTED_MAPPINGS = {
    "dependencies",
    "devDependencies",
    "dependenciesMeta",
    "peerDependencies",
    "peerDependenciesMeta",
    "optionalDependencies",
    "resolutions",
    "engines",
}


def group_exports(
    entries: Iterable[Entry],
    *,
    source_root: str = "./src",
    output_root: str = "./dist",
) -> Dict[str, Dict[str, str]]:
    """Group entries by output key into ``{types, require?, module?}`` records."""

    grouped: Dict[str, Dict[str, str]] = {}
    for entry in entries:
        artifact = entry_to_artifact(entry, source_root=source_root, output_root=output_root)
        if artifact is None:
            continue
        key = artifact.output_key
        group = grouped.setdefault(key, {"types": f"{key}.d.ts"})
        group[artifact.condition] = f"{key}{artifact.extension}"
    return grouped


def exports_are_mergeable(exports: Any) -> bool:
    return exports is None or isinstance(exports, Mapping)


def synthesize_exports(
    manifest: Mapping[str, Any],
    entries: Iterable[Entry],
    *,
    source_root: str = "./src",
    output_root: str = "./dist",
    preserve_foreign: bool = False,
) -> Dict[str, Any] | None:
    """Return a new manifest with a synthesized ``exports`` map.

    Returns ``None`` when the existing ``exports`` is neither absent nor a
    plain mapping; such manifests are left untouched.
    """

    existing = manifest.get("exports")
    if not exports_are_mergeable(existing):
        return None

    grouped = group_exports(entries, source_root=source_root, output_root=output_root)
    exports: Dict[str, Any] = {PACKAGE_JSON_EXPORT: PACKAGE_JSON_EXPORT, **grouped}
    if preserve_foreign and existing:
        for key, value in existing.items():
            exports.setdefault(key, value)

    updated = dict(manifest)
    updated["exports"] = exports
    return sort_manifest(updated)


def _field_sort_key(name: str) -> tuple[int, int, str]:
    if name in _FIELD_RANK:
        return (0, _FIELD_RANK[name], "")
    return (2 if name.startswith("_") else 1, 0, name)


def sort_manifest(manifest: Mapping[str, Any]) -> Dict[str, Any]:
    """Reorder manifest keys canonically; ``exports`` keeps its own order."""

    ordered: Dict[str, Any] = {}
    for name in sorted(manifest, key=_field_sort_key):
        value = manifest[name]
        if name in _SORTED_MAPPINGS and isinstance(value, Mapping):
            value = {key: value[key] for key in sorted(value)}
        ordered[name] = value
    return ordered


def serialize_manifest(manifest: Mapping[str, Any]) -> str:
    return f"{json.dumps(manifest, indent=2, ensure_ascii=False)}\n"


def read_manifest(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise TypeError(f"Package manifest '{path}' must contain an object at the root")
    return data


def _target_mode(path: Path) -> int:
    if path.exists():
        return stat.S_IMODE(path.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_manifest(path: Path, manifest: Mapping[str, Any]) -> bool:
    """Atomically replace ``path``; returns ``False`` if the content is unchanged."""

    text = serialize_manifest(manifest)
    if path.exists() and path.read_text(encoding="utf-8") == text:
        return False

    handle = tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        newline="\n",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    try:
        with handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(handle.name, _target_mode(path))
        os.replace(handle.name, path)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise
    return True


def update_manifest(
    path: Path,
    entries: Iterable[Entry],
    *,
    source_root: str = "./src",
    output_root: str = "./dist",
    preserve_foreign: bool = False,
) -> bool:
    """Read, synthesize, and write the manifest at ``path``.

    Returns ``True`` when the file was rewritten.
    """

    manifest = read_manifest(path)
    updated = synthesize_exports(
        manifest,
        entries,
        source_root=source_root,
        output_root=output_root,
        preserve_foreign=preserve_foreign,
    )
    if updated is None:
        return False
    return write_manifest(path, updated)
