"""Fixed-shape builds of the runtime globals bundles, outside the descriptor pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .config_loader import GlobalConfig
from .entries import Entry
from .options import ENVIRONMENT_DEFINES, EffectiveOptions

RUNTIME_GLOBALS_SOURCES: Tuple[str, ...] = (
    "./src/modules/manager/runtime.ts",
    "./src/modules/manager/globals-runtime.ts",
    "./src/modules/preview/globals-runtime.ts",
)

PREBUILT_RUNTIME_ENTRIES: Tuple[str, ...] = (
    "./src/prebuild/manager/runtime.ts",
    "./src/prebuild/manager/globals-runtime.ts",
    "./src/prebuild/preview/globals-runtime.ts",
)

COMMON_MANAGER_PRESET = "./src/modules/core-server/presets/common-manager.ts"

BROWSER_TARGETS: Tuple[str, ...] = ("chrome100", "safari15", "firefox91")

BROWSER_SHIMS: Dict[str, str] = {
    "process": "process/browser.js",
    "util": "util/util.js",
}


def prebuilt_manifest_entries() -> List[Entry]:
    """Manifest entries for the runtime bundles, which no descriptor declares."""

    return [Entry(file=file, format="iife") for file in PREBUILT_RUNTIME_ENTRIES]


@dataclass(slots=True)
class ExtraBuild:
    name: str
    options: EffectiveOptions
    stub_entries: List[str] = field(default_factory=list)


def _browser_bundle(**options: Any) -> EffectiveOptions:
    return {
        "format": ["esm"],
        "clean": False,
        "target": list(BROWSER_TARGETS),
        "alias": dict(BROWSER_SHIMS),
        "define": dict(ENVIRONMENT_DEFINES),
        **options,
    }


def extra_builds(settings: GlobalConfig, *, cwd: Path) -> List[ExtraBuild]:
    """The two unconditional builds, in the order they must run."""

    output_root = cwd / settings.output_root
    return [
        ExtraBuild(
            name="runtime-globals",
            options=_browser_bundle(
                entry=list(RUNTIME_GLOBALS_SOURCES),
                external=[],
                out_dir=str(output_root / "prebuild"),
                out_extension={".js": ".js"},
            ),
            stub_entries=list(PREBUILT_RUNTIME_ENTRIES),
        ),
        ExtraBuild(
            name="common-manager-preset",
            options=_browser_bundle(
                entry=[COMMON_MANAGER_PRESET],
                external=list(settings.manager_globals),
                out_dir=str(output_root / "modules" / "core-server" / "presets"),
            ),
        ),
    ]
