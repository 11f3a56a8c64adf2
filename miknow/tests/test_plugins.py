"""Unit tests for plugin records, the structure check and the catalog."""

import json

import pytest

from miknow.plugins import (
    PLUGIN_TEMPLATES,
    PluginData,
    PluginLibrary,
    check_plugin_code,
)


@pytest.fixture
def library(store):
    return PluginLibrary(store)


class TestCheckPluginCode:
    """Tests for the non-executing plugin code check."""

    @pytest.mark.parametrize("plugin_type", sorted(PLUGIN_TEMPLATES))
    def test_templates_are_valid(self, plugin_type):
        """Test that every bundled template passes."""
        message = check_plugin_code(PLUGIN_TEMPLATES[plugin_type])
        assert message == "Plugin test completed successfully! The plugin appears to be valid."

    def test_missing_deactivate(self):
        """Test that both lifecycle methods are required."""
        with pytest.raises(ValueError, match="activate\\(\\) and deactivate\\(\\)"):
            check_plugin_code("class P { activate() { return {}; } }")

    def test_unbalanced_braces(self):
        """Test an unclosed brace."""
        with pytest.raises(ValueError, match="Unclosed '\\{'"):
            check_plugin_code("class P { activate() {} deactivate() {}")

    def test_mismatched_bracket(self):
        """Test that a mismatched bracket reports its line."""
        with pytest.raises(ValueError, match="line 2"):
            check_plugin_code("function activate() {\n  return [1, 2);\n}\nfunction deactivate() {}")

    def test_unterminated_string(self):
        """Test a string that runs to the end of the line."""
        with pytest.raises(ValueError, match="Unterminated string"):
            check_plugin_code('function activate() { return "oops; }\nfunction deactivate() {}')

    def test_brackets_inside_strings_and_comments_are_ignored(self):
        """Test that brackets in strings, comments and template literals are skipped."""
        code = (
            "// activate ( [ {\n"
            "/* } ) */\n"
            "function activate() { return '}'; }\n"
            "function deactivate() { return `${'{'}`; }\n"
        )
        assert check_plugin_code(code)

    def test_unterminated_comment(self):
        """Test an unclosed block comment."""
        with pytest.raises(ValueError, match="Unterminated comment"):
            check_plugin_code("/* activate deactivate")

    def test_code_is_not_executed(self):
        """Test that code which would throw at runtime still passes."""
        code = "function activate() { throw new Error('boom'); }\nfunction deactivate() {}"
        assert check_plugin_code(code)


class TestPluginLibrary:
    """Tests for saved plugins."""

    def test_save_upserts_by_name(self, library):
        """Test that saving an existing name overwrites it."""
        library.save(PluginData(name="Counter", version="1.0.0"))
        library.save(PluginData(name="Counter", version="1.1.0"))

        assert [p.version for p in library.list_saved()] == ["1.1.0"]

    def test_delete(self, library):
        """Test deletion and the error for a missing plugin."""
        library.save(PluginData(name="Counter"))
        library.delete("Counter")

        assert library.list_saved() == []
        with pytest.raises(ValueError):
            library.delete("Counter")

    def test_export(self, library):
        """Test the export filename and JSON body."""
        library.save(PluginData(name="Word Counter", code="x"))

        filename, content = library.export("Word Counter")

        assert filename == "word-counter.json"
        assert json.loads(content)["code"] == "x"

    def test_export_missing(self, library):
        """Test that exporting a missing plugin raises."""
        with pytest.raises(ValueError):
            library.export("nothing")


class TestPluginCatalog:
    """Tests for catalog install state."""

    def test_markdown_extended_installed_by_default(self, library):
        """Test the default install state."""
        installed = {p.id: p.installed for p in library.catalog()}
        assert installed == {
            "graph-enhancer": False,
            "citation-helper": False,
            "markdown-extended": True,
            "obsidian-sync": False,
        }

    def test_toggle(self, library, store):
        """Test that toggles flip and persist."""
        assert library.toggle("graph-enhancer").installed is True
        assert library.toggle("markdown-extended").installed is False

        reloaded = {p.id: p.installed for p in PluginLibrary(store).catalog()}
        assert reloaded["graph-enhancer"] is True
        assert reloaded["markdown-extended"] is False

    def test_toggle_unknown(self, library):
        """Test that an unknown catalog id raises."""
        with pytest.raises(ValueError):
            library.toggle("not-a-plugin")
