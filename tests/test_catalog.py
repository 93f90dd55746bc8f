"""
Tests for the effect catalog.
"""

from __future__ import annotations

from audioshop.catalog import format_effects, format_examples, load_catalog


class TestCatalog:
    def test_bundled_catalog(self):
        catalog = load_catalog()
        invocations = [e.invocation for e in catalog.effects]
        assert len(invocations) == 13
        assert "hilbert -n 5001" in invocations
        assert catalog.examples

    def test_each_entry_is_one_effect(self):
        for entry in load_catalog().effects:
            assert len(entry.chain) == 1, entry.invocation

    def test_custom_file(self, tmp_dir):
        path = tmp_dir / "cat.yaml"
        path.write_text(
            "effects:\n  - invocation: vol 3\n    description: louder\nexamples:\n  - x\n"
        )
        catalog = load_catalog(path)
        assert catalog.effects[0].chain.argv() == ["vol", "3"]
        assert catalog.examples == ("x",)

    def test_empty_file(self, tmp_dir):
        path = tmp_dir / "empty.yaml"
        path.write_text("")
        catalog = load_catalog(path)
        assert catalog.effects == ()


class TestFormatting:
    def test_effects(self):
        text = format_effects(load_catalog())
        assert text.splitlines()[0] == "Available Effects:"
        assert "  vol 10" in text.splitlines()

    def test_describe(self):
        text = format_effects(load_catalog(), describe=True)
        assert "blown-out colour" in text

    def test_examples(self):
        assert format_examples(load_catalog()).startswith("Examples:\n  $ ")
