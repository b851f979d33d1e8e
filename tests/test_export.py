"""
Tests for export rendering.
"""
import orjson
import pytest

from secrets_cli.export import render, secret_to_env_name


SECRETS = {"database/password": "p@ss word", "api.key": "k'1"}


class TestEnvName:
    """Tests for secret_to_env_name."""

    @pytest.mark.parametrize("secret,expected", [
        ("database/password", "DATABASE_PASSWORD"),
        ("api.key", "API_KEY"),
        ("my-token", "MY_TOKEN"),
        ("plain", "PLAIN"),
    ])
    def test_conversion(self, secret, expected):
        assert secret_to_env_name(secret) == expected

    def test_prefix(self):
        assert secret_to_env_name("db/user", "APP_") == "APP_DB_USER"


class TestRender:
    """Tests for render."""

    def test_env_is_shell_quoted(self):
        """Values are quoted so the output can be eval'd safely."""
        out = render(SECRETS, "env")
        assert out.splitlines() == [
            "export DATABASE_PASSWORD='p@ss word'",
            "export API_KEY='k'\"'\"'1'",
        ]

    def test_dotenv(self):
        out = render({"database/password": "p@ss"}, "dotenv")
        assert out == "DATABASE_PASSWORD=p@ss\n"

    def test_json(self):
        out = render(SECRETS, "json", prefix="APP_")
        assert orjson.loads(out) == {
            "APP_DATABASE_PASSWORD": "p@ss word",
            "APP_API_KEY": "k'1",
        }
        assert out.endswith("\n")

    def test_empty(self):
        assert render({}, "env") == ""

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="unsupported export format"):
            render(SECRETS, "xml")
