"""
Unit tests for the dynacrud CLI.
"""

import json
import os
import sys

import pytest
import uvicorn
from click.testing import CliRunner
from loguru import logger

from dynacrud.cli.commands import models as models_commands
from dynacrud.cli.commands.serve import apply_config_overrides, build_uvicorn_config
from dynacrud.cli.main import cli
from dynacrud.registry import ModelRegistry
from dynacrud.services.config_loader import ConfigLoader
from dynacrud.settings import settings


@pytest.fixture(autouse=True)
def restore_logger():
    """The CLI re-points loguru at the runner's stderr; put it back afterwards."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path, materials_config):
    path = tmp_path / "entities.json"
    path.write_text(
        json.dumps(
            {
                "record": {
                    "materials": materials_config,
                    "suppliers": {"schema": {"name": {"type": "string", "required": True}}},
                    "metadata": {"version": 2},
                }
            }
        )
    )
    return path


def json_payload(output: str) -> dict:
    return json.loads(output[output.index("{"): output.rindex("}") + 1])


class TestSchemaCompile:
    def test_compile_all(self, runner, config_file):
        result = runner.invoke(cli, ["schema", "compile", str(config_file)])

        assert result.exit_code == 0, result.output
        payload = json_payload(result.output)
        assert sorted(payload) == ["materials", "suppliers"]
        assert payload["materials"]["schema"]["price"] == {"type": "number", "min": 0}
        assert payload["materials"]["options"] == {"strict": False}
        assert "Compiled 2 entities" in result.output

    def test_compile_selected(self, runner, config_file):
        result = runner.invoke(cli, ["schema", "compile", str(config_file), "-e", "suppliers"])

        assert result.exit_code == 0, result.output
        assert list(json_payload(result.output)) == ["suppliers"]

    def test_unknown_entity(self, runner, config_file):
        result = runner.invoke(cli, ["schema", "compile", str(config_file), "--entity", "orders"])
        assert result.exit_code == 2
        assert "orders" in result.output

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["schema", "compile", str(tmp_path / "missing.json")])
        assert result.exit_code == 1
        assert "Error" in result.output


class TestModelsLoad:
    @pytest.fixture
    def fake_loader(self, monkeypatch, stub_db, materials_config):
        document = {"materials": materials_config}

        class FileConfigLoader(ConfigLoader):
            def __init__(self, url=None, fail_fast=None):
                super().__init__(db=stub_db, registry=ModelRegistry(), url=url, fail_fast=fail_fast)

            async def load(self, config=None, http_client=None):
                return await super().load(config=document if self.url != "empty" else {"metadata": {}})

        monkeypatch.setattr(models_commands, "ConfigLoader", FileConfigLoader)
        return FileConfigLoader

    def test_load(self, runner, fake_loader, stub_db):
        result = runner.invoke(cli, ["models", "load"])

        assert result.exit_code == 0, result.output
        assert "Loaded 1 models" in result.output
        assert "materials -> materials" in result.output
        assert any("CREATE TABLE" in statement for statement in stub_db.statements)
        assert stub_db.is_connected is False

    def test_nothing_loaded(self, runner, fake_loader):
        result = runner.invoke(cli, ["models", "load", "--url", "empty"])
        assert result.exit_code == 1
        assert "No models loaded" in result.output


class TestServe:
    """Test uvicorn configuration and remote-config overrides for serve."""

    @pytest.fixture(autouse=True)
    def isolated_settings(self, monkeypatch):
        # serve writes these; monkeypatch puts the originals back
        monkeypatch.setenv("REMOTE_CONFIG__URL", "")
        monkeypatch.setenv("REMOTE_CONFIG__LOAD_ON_STARTUP", "true")
        monkeypatch.setattr(settings.remote_config, "url", None)
        monkeypatch.setattr(settings.remote_config, "load_on_startup", True)
        monkeypatch.setattr(settings.api, "reload", False)
        monkeypatch.setattr(settings.api, "workers", 1)

    @pytest.fixture
    def uvicorn_calls(self, monkeypatch):
        calls = []
        monkeypatch.setattr(uvicorn, "run", lambda **kwargs: calls.append(kwargs))
        return calls

    def test_build_config_defaults(self):
        config = build_uvicorn_config()
        assert config == {
            "app": "dynacrud.api.main:app",
            "host": settings.api.host,
            "port": settings.api.port,
            "log_level": settings.api.log_level,
            "workers": 1,
        }

    def test_build_config_reload_wins_over_workers(self):
        config = build_uvicorn_config(reload=True, workers=4)
        assert config["reload"] is True
        assert "workers" not in config

    def test_build_config_settings_reload(self, monkeypatch):
        monkeypatch.setattr(settings.api, "reload", True)
        assert build_uvicorn_config()["reload"] is True
        assert build_uvicorn_config(reload=False)["workers"] == 1
        assert build_uvicorn_config(workers=3)["workers"] == 3

    def test_apply_config_overrides(self):
        overrides = apply_config_overrides("https://config.example.com/entities.json", load=False)

        assert overrides == {
            "REMOTE_CONFIG__URL": "https://config.example.com/entities.json",
            "REMOTE_CONFIG__LOAD_ON_STARTUP": "false",
        }
        assert settings.remote_config.url == "https://config.example.com/entities.json"
        assert settings.remote_config.load_on_startup is False
        assert os.environ["REMOTE_CONFIG__LOAD_ON_STARTUP"] == "false"

    def test_apply_no_overrides(self):
        assert apply_config_overrides() == {}
        assert settings.remote_config.url is None

    def test_serve_command(self, runner, uvicorn_calls):
        result = runner.invoke(
            cli,
            ["serve", "--port", "9000", "--workers", "2", "--config-url", "https://config.example.com/e.json"],
        )

        assert result.exit_code == 0, result.output
        assert uvicorn_calls == [
            {
                "app": "dynacrud.api.main:app",
                "host": settings.api.host,
                "port": 9000,
                "log_level": settings.api.log_level,
                "workers": 2,
            }
        ]
        assert os.environ["REMOTE_CONFIG__URL"] == "https://config.example.com/e.json"

    def test_serve_no_load(self, runner, uvicorn_calls):
        result = runner.invoke(cli, ["serve", "--no-load", "--reload"])

        assert result.exit_code == 0, result.output
        assert uvicorn_calls[0]["reload"] is True
        assert settings.remote_config.load_on_startup is False
        assert os.environ["REMOTE_CONFIG__LOAD_ON_STARTUP"] == "false"
