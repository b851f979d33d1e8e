"""
Tests for identifier validation.

Tests cover:
- Flat names (vault names, principals)
- Hierarchical secret names
- Error kinds and builtin compatibility
"""
import pytest

from secrets_cli.errors import ErrorKind, InvalidIdentifier
from secrets_cli.validation import validate_flat_name, validate_hierarchical_name


class TestFlatName:
    """Tests for validate_flat_name."""

    @pytest.mark.parametrize("name", [
        "dev", "prod-eu", "alice@example.com", "team_a", "v1.2",
    ])
    def test_accepts_safe_names(self, name):
        """Plain names are returned unchanged."""
        assert validate_flat_name(name) == name

    @pytest.mark.parametrize("name", [
        "", "..", "a/b", "a\\b", "-rf", "--help", "dev..", "../etc",
    ])
    def test_rejects_unsafe_names(self, name):
        """Empty, traversal, separators and option-like names are refused."""
        with pytest.raises(InvalidIdentifier):
            validate_flat_name(name)

    def test_error_mentions_what(self):
        """The message names the kind of identifier."""
        with pytest.raises(InvalidIdentifier, match="vault name cannot be empty"):
            validate_flat_name("", "vault name")

    def test_error_kind_and_builtin_base(self):
        """InvalidIdentifier is tagged and still a ValueError."""
        with pytest.raises(ValueError) as exc_info:
            validate_flat_name("a/b")
        assert exc_info.value.kind is ErrorKind.INVALID_IDENTIFIER


class TestHierarchicalName:
    """Tests for validate_hierarchical_name."""

    @pytest.mark.parametrize("name", [
        "password", "database/password", "a/b/c", "secret/-x", "api.key",
    ])
    def test_accepts_paths(self, name):
        """Interior separators and dashes inside segments are allowed."""
        assert validate_hierarchical_name(name) == name

    @pytest.mark.parametrize("name", [
        "",
        "../escape",
        "a/../b",
        "a/..",
        "/absolute",
        "trailing/",
        "a//b",
        "-flag",
        "a\\b",
        ".",
        "./x",
        "a/./b",
        "a/.",
    ])
    def test_rejects_unsafe_paths(self, name):
        """Traversal, dot and empty segments and option-like names are refused."""
        with pytest.raises(InvalidIdentifier):
            validate_hierarchical_name(name)

    def test_dots_inside_segment_allowed(self):
        """Only a whole '..' segment counts as traversal."""
        assert validate_hierarchical_name("a/..b/c") == "a/..b/c"
