"""
Tests for the apikit command line interface.
"""

import json
import textwrap
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from apikit import __version__
from apikit.cli import cli


SOURCE = textwrap.dedent('''
    from apikit import Controller, RestController, Get, Delete, JWTPublic, JWTEndpoint, AdminValidator


    @RestController("/api/users")
    class UserController(Controller):

        @Get("/{id}")
        async def get_user(self, id):
            return {"id": id}

        @Get("/")
        @JWTPublic()
        async def list_users(self):
            return []

        @Delete("/{id}")
        @JWTEndpoint([AdminValidator()], require_all=False)
        async def delete_user(self, id):
            return None
''')


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def project(tmp_path):
    (tmp_path / "controllers").mkdir()
    (tmp_path / "controllers" / "users.py").write_text(SOURCE)
    return tmp_path


# ============================================================================
# annotations
# ============================================================================

class TestAnnotationsCommand:

    def test_text_output(self, runner, project):
        result = runner.invoke(cli, ["annotations", str(project)])

        assert result.exit_code == 0, result.output
        assert "@RestController" in result.output
        assert "UserController.delete_user" in result.output
        assert "6 annotations in 1 files" in result.output
        assert "Get: 2" in result.output

    def test_verbose_shows_parameters(self, runner, project):
        result = runner.invoke(cli, ["-v", "annotations", str(project)])
        assert result.exit_code == 0, result.output
        assert "base_path = /api/users" in result.output
        assert "users.py:" in result.output

    def test_json_output(self, runner, project):
        result = runner.invoke(cli, ["annotations", str(project), "--json-output"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["stats"]["total"] == 6
        assert data["stats"]["files"] == 1
        endpoint = next(a for a in data["annotations"] if a["kind"] == "JWTEndpoint")
        assert endpoint["target_name"] == "UserController.delete_user"
        assert endpoint["parameters"] == {"validators": ["AdminValidator()"], "require_all": False}

    def test_include_filter(self, runner, project):
        (project / "other").mkdir()
        result = runner.invoke(cli, ["annotations", str(project), "--include", "other"])
        assert result.exit_code == 0, result.output
        assert "0 annotations" in result.output

    def test_missing_path(self, runner, tmp_path):
        result = runner.invoke(cli, ["annotations", str(tmp_path / "missing")])
        assert result.exit_code != 0
        assert "does not exist" in result.output


# ============================================================================
# routes
# ============================================================================

class TestRoutesCommand:

    def test_lists_routes(self, runner, project):
        result = runner.invoke(cli, ["routes", str(project)])

        assert result.exit_code == 0, result.output
        lines = result.output.strip().splitlines()
        assert "GET /api/users/<id> -> UserController.get_user" in lines
        assert "GET /api/users -> UserController.list_users" in lines
        assert "DELETE /api/users/<id> -> UserController.delete_user" in lines

    def test_no_routes(self, runner, tmp_path):
        (tmp_path / "empty.py").write_text("x = 1\n")
        result = runner.invoke(cli, ["routes", str(tmp_path)])
        assert result.exit_code == 0
        assert "No routes found" in result.output


# ============================================================================
# serve / version
# ============================================================================

class TestServeCommand:

    def test_serve_invokes_uvicorn(self, runner):
        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["serve", "myapp.main:app", "--port", "9000", "--reload"])

        assert result.exit_code == 0, result.output
        run.assert_called_once_with(
            "myapp.main:app", host="127.0.0.1", port=9000, reload=True, log_level="info",
        )

    def test_keyboard_interrupt(self, runner):
        with patch("uvicorn.run", side_effect=KeyboardInterrupt):
            result = runner.invoke(cli, ["serve", "myapp.main:app"])
        assert result.exit_code == 0
        assert "Server stopped" in result.output

    def test_invalid_log_level(self, runner):
        result = runner.invoke(cli, ["serve", "myapp.main:app", "--log-level", "loud"])
        assert result.exit_code != 0


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
