"""Loading of global settings and build descriptor sources."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence, Union
import asyncio
import importlib.util
import inspect
import json
import tomllib

import yaml


ConfigLoader = Callable[[Any], Any]

SETTINGS_STEM = "prebundle"
DESCRIPTOR_STEM = "prebundle.config"
PYTHON_SUFFIX = ".py"


FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""


class ConfigurationError(ValueError):
    """Raised when no usable build configuration can be found."""


def read_config_data(path: Path) -> Any:
    """Decode ``path`` with the loader registered for its suffix."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS)) or "<none>"
        raise ValueError(f"Unsupported configuration file extension: {suffix}. Supported: {supported}")
    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"
    with path.open(mode, **kwargs) as handle:
        return loader(handle)


def load_config_file(path: Path) -> Mapping[str, Any]:
    data = read_config_data(path)
    if not isinstance(data, Mapping):
        raise TypeError(f"Configuration file '{path}' must contain a mapping at the root")
    return data


def find_config_file(directory: Path, stem: str, *, suffixes: Sequence[str] | None = None) -> Path | None:
    """Return the single file named ``stem`` plus a supported suffix, if any."""

    allowed = {suffix.lower() for suffix in (suffixes or FILE_LOADERS.keys())}
    found: Path | None = None
    for path in sorted(directory.iterdir()):
        if not path.is_file():
            continue
        if path.suffix.lower() not in allowed or path.stem != stem:
            continue
        if found is not None:
            raise ValueError(
                f"Multiple configuration files found for '{stem}': '{found.name}' and '{path.name}'. "
                "Only one format per configuration entry is allowed."
            )
        found = path
    return found


def normalize_string_list(value: Any, *, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        text = str(value).strip()
        return [text] if text else []
    if isinstance(value, Sequence):
        result: List[str] = []
        for item in value:
            if not isinstance(item, (str, bytes)):
                raise TypeError(f"{field_name} entries must be strings")
            text = str(item).strip()
            if text:
                result.append(text)
        return result
    raise TypeError(f"{field_name} must be a string or sequence of strings")


@dataclass(slots=True)
class GlobalConfig:
    source_root: str = "./src"
    output_root: str = "./dist"
    compiler: str = "esbuild"
    log_level: str = "info"
    manager_globals: List[str] = field(default_factory=list)
    preserve_foreign_exports: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GlobalConfig":
        section = data.get("global", {}) if isinstance(data, Mapping) else {}
        if not isinstance(section, Mapping):
            raise TypeError("[global] must be a table")
        preserve = section.get("preserve_foreign_exports", False)
        if not isinstance(preserve, bool):
            raise TypeError("global.preserve_foreign_exports must be a boolean")
        return cls(
            source_root=str(section.get("source_root", "./src")),
            output_root=str(section.get("output_root", "./dist")),
            compiler=str(section.get("compiler", "esbuild")),
            log_level=str(section.get("log_level", "info")).lower(),
            manager_globals=normalize_string_list(
                section.get("manager_globals"),
                field_name="global.manager_globals",
            ),
            preserve_foreign_exports=preserve,
        )


@dataclass(frozen=True, slots=True)
class SingleSource:
    descriptor: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class ListSource:
    descriptors: Sequence[Any]


@dataclass(frozen=True, slots=True)
class FactorySource:
    factory: Callable[[Dict[str, Any]], Any]


ConfigSource = Union[SingleSource, ListSource, FactorySource]


def classify_source(value: Any) -> ConfigSource | None:
    """Tag a loaded configuration value; unusable shapes yield ``None``."""

    if isinstance(value, Mapping):
        builds = value.get("builds")
        if len(value) == 1 and isinstance(builds, list):
            return ListSource(builds)
        return SingleSource(value)
    if isinstance(value, (list, tuple)):
        return ListSource(value)
    if callable(value):
        return FactorySource(value)
    return None


def _as_list(source: ConfigSource | None) -> List[Any]:
    if isinstance(source, SingleSource):
        return [source.descriptor]
    if isinstance(source, ListSource):
        return list(source.descriptors)
    return []


def load_descriptors(value: Any) -> List[Dict[str, Any]]:
    """Normalize a configuration value into an ordered list of build descriptors."""

    source = classify_source(value)
    if isinstance(source, FactorySource):
        produced = source.factory({})
        if inspect.isawaitable(produced):
            produced = asyncio.run(_await(produced))
        source = classify_source(produced)
        if isinstance(source, FactorySource):
            source = None

    descriptors: List[Dict[str, Any]] = []
    for item in _as_list(source):
        if not isinstance(item, Mapping):
            raise ConfigurationError(f"Build configuration entries must be mappings, got {type(item).__name__}")
        descriptors.append(dict(item))

    if not descriptors:
        raise ConfigurationError("No build configuration found")
    return descriptors


async def _await(awaitable: Any) -> Any:
    return await awaitable


def _load_python_source(path: Path) -> Any:
    spec = importlib.util.spec_from_file_location("_prebundle_user_config", path)
    if spec is None or spec.loader is None:
        raise ConfigurationError(f"Cannot import build configuration from '{path}'")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    for attribute in ("config", "default"):
        if hasattr(module, attribute):
            return getattr(module, attribute)
    return None


def read_descriptor_source(directory: Path) -> Any:
    """Load the raw descriptor source from ``directory``; ``None`` if absent."""

    path = find_config_file(
        directory,
        DESCRIPTOR_STEM,
        suffixes=[*FILE_LOADERS.keys(), PYTHON_SUFFIX],
    )
    if path is None:
        return None
    if path.suffix.lower() == PYTHON_SUFFIX:
        return _load_python_source(path)
    return read_config_data(path)


@dataclass(slots=True)
class ProjectConfiguration:
    root: Path
    global_config: GlobalConfig
    descriptors: List[Dict[str, Any]]

    @classmethod
    def from_directory(cls, root: Path) -> "ProjectConfiguration":
        settings_path = find_config_file(root, SETTINGS_STEM)
        global_data: Mapping[str, Any] = {}
        if settings_path is not None:
            global_data = load_config_file(settings_path)
        return cls(
            root=root,
            global_config=GlobalConfig.from_mapping(global_data),
            descriptors=load_descriptors(read_descriptor_source(root)),
        )
