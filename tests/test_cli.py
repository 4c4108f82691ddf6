"""Tests for the taskflow-admin command line."""
import pytest
from click.testing import CliRunner
from taskflow_core import cli, crud, models


@pytest.fixture
def runner(monkeypatch, session_factory, settings):
    monkeypatch.setattr(cli, "SessionLocal", session_factory)
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    return CliRunner()


class TestCreateAdmin:
    def test_creates_admin(self, runner, db):
        result = runner.invoke(cli.main, ["create-admin", "--email", "root@example.com", "--password", "secret123"])
        assert result.exit_code == 0, result.output
        assert "root@example.com" in result.output
        assert crud.get_user_by_email(db, "root@example.com").role == models.UserRole.ADMIN

    def test_with_demo_user(self, runner, db):
        result = runner.invoke(
            cli.main,
            ["create-admin", "--email", "root@example.com", "--password", "secret123", "--with-demo-user"],
        )
        assert result.exit_code == 0, result.output
        assert crud.get_user_by_email(db, cli.DEMO_USER_EMAIL).role == models.UserRole.USER

    def test_existing_user(self, runner, make_user):
        make_user("root@example.com")
        result = runner.invoke(cli.main, ["create-admin", "--email", "root@example.com", "--password", "secret123"])
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_short_password(self, runner):
        result = runner.invoke(cli.main, ["create-admin", "--password", "123"])
        assert result.exit_code == 1
