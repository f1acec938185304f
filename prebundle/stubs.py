"""Type-declaration stubs that forward to the original sources for unbundled development."""
from __future__ import annotations

from pathlib import Path, PurePosixPath
import posixpath

from .entries import output_key

STUB_HEADER = "// generated type definitions for dev-mode"
STUB_SUFFIX = ".d.ts"


def stub_location(file: str, *, source_root: str = "./src", output_root: str = "./dist") -> str:
    return output_key(file, source_root=source_root, output_root=output_root) + STUB_SUFFIX


def render_stub(file: str, *, source_root: str = "./src", output_root: str = "./dist") -> str:
    stub = PurePosixPath(stub_location(file, source_root=source_root, output_root=output_root))
    source = PurePosixPath(posixpath.normpath(file.replace("\\", "/")))
    relative = posixpath.relpath(str(source.parent), str(stub.parent))
    return f"{STUB_HEADER}\nexport * from '{relative}/{source.name}';\n"


def write_stub(
    file: str,
    *,
    cwd: Path,
    source_root: str = "./src",
    output_root: str = "./dist",
) -> Path:
    """Write the stub for ``file`` below ``cwd`` and return its path."""

    location = stub_location(file, source_root=source_root, output_root=output_root)
    target = cwd.joinpath(*PurePosixPath(location).parts)
    target.parent.mkdir(parents=True, exist_ok=True)
    content = render_stub(file, source_root=source_root, output_root=output_root)
    target.write_text(content, encoding="utf-8", newline="\n")
    return target
