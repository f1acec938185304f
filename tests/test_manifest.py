from __future__ import annotations

from pathlib import Path
import json
import os
import stat
import tempfile
import unittest
from unittest.mock import patch

from prebundle.entries import Entry, resolve_entries
from prebundle.manifest import (
    group_exports,
    serialize_manifest,
    sort_manifest,
    synthesize_exports,
    update_manifest,
    write_manifest,
)


class GroupExportsTests(unittest.TestCase):
    def test_commonjs_only(self) -> None:
        grouped = group_exports([Entry("./src/a.ts", "commonjs")])
        self.assertEqual(grouped, {"./dist/a": {"types": "./dist/a.d.ts", "require": "./dist/a.js"}})

    def test_module_adds_to_same_group(self) -> None:
        grouped = group_exports([Entry("./src/a.ts", "commonjs"), Entry("./src/a.ts", "module")])
        self.assertEqual(
            grouped,
            {"./dist/a": {"types": "./dist/a.d.ts", "require": "./dist/a.js", "module": "./dist/a.mjs"}},
        )

    def test_last_format_wins_for_shared_condition(self) -> None:
        grouped = group_exports([Entry("./src/a.ts", "esm"), Entry("./src/a.ts", "iife")])
        self.assertEqual(grouped["./dist/a"]["module"], "./dist/a.js")

    def test_unknown_format_creates_no_group(self) -> None:
        self.assertEqual(group_exports([Entry("./src/a.ts", "umd")]), {})


class SynthesizeExportsTests(unittest.TestCase):
    def setUp(self) -> None:
        self.entries = [Entry("./src/index.ts", "cjs"), Entry("./src/index.ts", "esm")]

    def test_replaces_exports_and_pins_package_json(self) -> None:
        manifest = {"name": "pkg", "exports": {"./old": "./old.js"}}
        updated = synthesize_exports(manifest, self.entries)

        self.assertEqual(list(updated["exports"]), ["./package.json", "./dist/index"])
        self.assertEqual(updated["exports"]["./package.json"], "./package.json")
        self.assertNotIn("./old", updated["exports"])
        self.assertEqual(manifest["exports"], {"./old": "./old.js"})

    def test_preserving_foreign_exports(self) -> None:
        manifest = {"exports": {"./old": "./old.js", "./package.json": "./elsewhere.json"}}
        updated = synthesize_exports(manifest, self.entries, preserve_foreign=True)
        self.assertEqual(list(updated["exports"]), ["./package.json", "./dist/index", "./old"])
        self.assertEqual(updated["exports"]["./package.json"], "./package.json")

    def test_missing_exports_is_created(self) -> None:
        updated = synthesize_exports({"name": "pkg"}, self.entries)
        self.assertIn("./dist/index", updated["exports"])

    def test_incompatible_exports_are_left_alone(self) -> None:
        for exports in ("./index.js", ["./a.js", "./b.js"], 7):
            with self.subTest(exports=exports):
                self.assertIsNone(synthesize_exports({"exports": exports}, self.entries))

    def test_two_descriptor_scenario(self) -> None:
        entries = resolve_entries(
            [
                {"entry": "./src/index.ts", "format": ["commonjs", "module"]},
                {"entry": {"extra": "./src/extra.ts"}, "format": "module"},
            ]
        )
        updated = synthesize_exports({}, entries)
        self.assertEqual(
            updated["exports"],
            {
                "./package.json": "./package.json",
                "./dist/index": {
                    "types": "./dist/index.d.ts",
                    "require": "./dist/index.js",
                    "module": "./dist/index.mjs",
                },
                "./dist/extra": {
                    "types": "./dist/extra.d.ts",
                    "module": "./dist/extra.mjs",
                },
            },
        )


class SortManifestTests(unittest.TestCase):
    def test_known_fields_first_then_alphabetical_then_private(self) -> None:
        manifest = {
            "_private": 1,
            "zeta": 1,
            "dependencies": {"b": "1", "a": "1"},
            "exports": {"./z": "./z.js", "./a": "./a.js"},
            "alpha": 1,
            "version": "1.0.0",
            "name": "pkg",
        }
        ordered = sort_manifest(manifest)
        self.assertEqual(list(ordered), ["name", "version", "exports", "dependencies", "alpha", "zeta", "_private"])
        self.assertEqual(list(ordered["dependencies"]), ["a", "b"])
        self.assertEqual(list(ordered["exports"]), ["./z", "./a"])


class ManifestFileTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.path = Path(self.temp_dir.name) / "package.json"
        self.entries = [Entry("./src/index.ts", "cjs"), Entry("./src/index.ts", "esm")]

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_serialization_format(self) -> None:
        text = serialize_manifest({"name": "pkg", "exports": {"./package.json": "./package.json"}})
        self.assertTrue(text.endswith("}\n"))
        self.assertFalse(text.endswith("\n\n"))
        self.assertIn('\n  "name": "pkg"', text)

    def test_second_run_is_byte_identical(self) -> None:
        self.path.write_text(json.dumps({"version": "1.0.0", "name": "pkg", "exports": {}}))
        self.assertTrue(update_manifest(self.path, self.entries))
        first = self.path.read_bytes()

        self.assertFalse(update_manifest(self.path, self.entries))
        self.assertEqual(self.path.read_bytes(), first)
        self.assertTrue(first.endswith(b"}\n"))

    def test_string_exports_leave_file_untouched(self) -> None:
        original = '{"exports": "./index.js",   "name": "pkg"}'
        self.path.write_text(original)
        self.assertFalse(update_manifest(self.path, self.entries))
        self.assertEqual(self.path.read_text(), original)

    def test_write_replaces_atomically(self) -> None:
        self.path.write_text("{}")
        with patch("prebundle.manifest.os.replace", wraps=os.replace) as replace:
            self.assertTrue(write_manifest(self.path, {"name": "pkg"}))
        source, destination = replace.call_args[0]
        self.assertEqual(Path(destination), self.path)
        self.assertEqual(Path(source).parent, self.path.parent)
        self.assertFalse(Path(source).exists())
        self.assertEqual(json.loads(self.path.read_text()), {"name": "pkg"})

    @unittest.skipIf(os.name == "nt", "POSIX permissions")
    def test_rewrite_keeps_existing_permissions(self) -> None:
        self.path.write_text(json.dumps({"name": "pkg"}))
        self.path.chmod(0o644)
        self.assertTrue(update_manifest(self.path, self.entries))
        self.assertEqual(stat.S_IMODE(self.path.stat().st_mode), 0o644)

    @unittest.skipIf(os.name == "nt", "POSIX permissions")
    def test_new_file_honours_umask(self) -> None:
        previous = os.umask(0o022)
        try:
            write_manifest(self.path, {"name": "pkg"})
        finally:
            os.umask(previous)
        self.assertEqual(stat.S_IMODE(self.path.stat().st_mode), 0o644)

    def test_failed_write_leaves_original_and_no_temp_file(self) -> None:
        self.path.write_text("{}")
        with patch("prebundle.manifest.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                write_manifest(self.path, {"name": "pkg"})
        self.assertEqual(self.path.read_text(), "{}")
        self.assertEqual([p.name for p in self.path.parent.iterdir()], ["package.json"])


if __name__ == "__main__":
    unittest.main()
