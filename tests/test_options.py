from __future__ import annotations

from pathlib import Path
import unittest

from prebundle.config_loader import GlobalConfig
from prebundle.options import ENVIRONMENT_DEFINES, Flags, base_options, has_flag, merge_layers


class FlagTests(unittest.TestCase):
    def test_flags_match_by_prefix(self) -> None:
        flags = Flags.from_args(["--watch=true", "--optimized", "positional", "--unknown"])
        self.assertTrue(flags.watch)
        self.assertTrue(flags.optimized)
        self.assertFalse(flags.reset)

    def test_flags_require_double_dash_prefix(self) -> None:
        self.assertFalse(has_flag(["watch", "-reset"], "watch"))
        self.assertFalse(has_flag(["-reset"], "reset"))
        self.assertTrue(has_flag(["--resetting"], "reset"))

    def test_no_arguments(self) -> None:
        self.assertEqual(Flags.from_args([]), Flags())


class MergeLayerTests(unittest.TestCase):
    def test_precedence_is_defaults_then_descriptor_then_overrides(self) -> None:
        defaults = {"a": "default", "b": "default", "c": "default"}
        descriptor = {"b": "descriptor", "c": "descriptor"}
        overrides = {"c": "override"}

        merged = merge_layers(defaults, descriptor, overrides)
        self.assertEqual(merged, {"a": "default", "b": "descriptor", "c": "override"})

    def test_nested_values_are_replaced_not_merged(self) -> None:
        merged = merge_layers({"define": {"A": "1", "B": "2"}}, {"define": {"C": "3"}}, {})
        self.assertEqual(merged["define"], {"C": "3"})

    def test_inputs_are_not_mutated(self) -> None:
        defaults = {"a": 1}
        descriptor = {"a": 2}
        merge_layers(defaults, descriptor, {"a": 3})
        self.assertEqual(defaults, {"a": 1})
        self.assertEqual(descriptor, {"a": 2})


class BaseOptionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.cwd = Path("/work/pkg")
        self.settings = GlobalConfig()

    def test_overrides_always_win_on_watch_and_clean(self) -> None:
        layers = base_options(Flags(watch=True), cwd=self.cwd, settings=self.settings)
        merged = merge_layers(layers.defaults, {"watch": False, "clean": True, "format": "esm"}, layers.overrides)
        self.assertTrue(merged["watch"])
        self.assertFalse(merged["clean"])
        self.assertFalse(merged["silent"])

    def test_defaults_supply_output_and_policy(self) -> None:
        layers = base_options(Flags(), cwd=self.cwd, settings=self.settings)
        merged = merge_layers(layers.defaults, {"entry": ["./src/index.ts"]}, layers.overrides)
        self.assertEqual(merged["out_dir"], str(self.cwd / "dist"))
        self.assertTrue(merged["treeshake"])
        self.assertFalse(merged["sourcemap"])
        self.assertTrue(merged["silent"])
        self.assertEqual(merged["define"], ENVIRONMENT_DEFINES)

    def test_compiler_option_hook_updates_in_place(self) -> None:
        layers = base_options(Flags(optimized=True), cwd=self.cwd, settings=self.settings)
        nested = {"charset": "utf8", "minify_identifiers": True}
        result = layers.defaults["compiler_options"](nested)

        self.assertIs(result, nested)
        self.assertEqual(nested["charset"], "utf8")
        self.assertEqual(nested["outbase"], str(self.cwd / "src"))
        self.assertEqual(nested["log_level"], "error")
        self.assertEqual(nested["legal_comments"], "none")
        self.assertTrue(nested["minify_whitespace"])
        self.assertTrue(nested["minify_syntax"])
        self.assertFalse(nested["minify_identifiers"])

    def test_compiler_option_hook_without_optimization(self) -> None:
        layers = base_options(Flags(), cwd=self.cwd, settings=self.settings)
        nested = layers.defaults["compiler_options"]({})
        self.assertFalse(nested["minify_whitespace"])
        self.assertFalse(nested["minify_syntax"])


if __name__ == "__main__":
    unittest.main()
