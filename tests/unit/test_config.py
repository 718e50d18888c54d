"""Unit tests for configuration and logging setup."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import structlog

from depot.config import LoggingConfig, Settings, get_settings
from depot.main import create_app
from depot.utils.logging import configure_logging


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for name in ("DEPOT_CONFIG_FILE", "DEPOT_SANDBOX__ROOT_PATH", "DEPOT_SERVER__PORT", "DEPOT_UPLOAD__MAX_SIZE_BYTES"):
        monkeypatch.delenv(name, raising=False)
    # Keep ./config.yaml lookups away from the developer's working directory
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.server.port == 8000
        assert settings.sandbox.root_path is None
        assert settings.sandbox.reject_colons is True
        assert settings.sandbox.default_folder_name == "New Folder"
        assert settings.upload.max_size_bytes == 1024 * 1024 * 1024
        assert settings.static.directory is None
        assert settings.logging.json_output is False

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DEPOT_SANDBOX__ROOT_PATH", "/srv/files")
        monkeypatch.setenv("DEPOT_SERVER__PORT", "9000")

        settings = Settings()

        assert settings.sandbox.root_path == "/srv/files"
        assert settings.server.port == 9000

    def test_yaml_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        config_file = tmp_path / "depot.yaml"
        config_file.write_text(
            "sandbox:\n"
            "  root_path: /data\n"
            "  reject_colons: false\n"
            "upload:\n"
            "  max_size_bytes: 1024\n"
            "logging:\n"
            "  level: DEBUG\n"
            "  json: true\n"
        )
        monkeypatch.setenv("DEPOT_CONFIG_FILE", str(config_file))

        settings = get_settings()

        assert settings.sandbox.root_path == "/data"
        assert settings.sandbox.reject_colons is False
        assert settings.upload.max_size_bytes == 1024
        assert settings.logging.level == "DEBUG"
        assert settings.logging.json_output is True

    def test_env_beats_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        config_file = tmp_path / "depot.yaml"
        config_file.write_text("sandbox:\n  root_path: /from-file\n  default_folder_name: Untitled\n")
        monkeypatch.setenv("DEPOT_CONFIG_FILE", str(config_file))
        monkeypatch.setenv("DEPOT_SANDBOX__ROOT_PATH", "/from-env")

        settings = get_settings()

        assert settings.sandbox.root_path == "/from-env"
        assert settings.sandbox.default_folder_name == "Untitled"

    def test_cwd_config_file(self, tmp_path: Path):
        (tmp_path / "config.yaml").write_text("server:\n  port: 8123\n")
        assert get_settings().server.port == 8123

    def test_explicit_file_beats_cwd_file(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        (tmp_path / "config.yaml").write_text("server:\n  port: 8123\n")
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("server:\n  port: 8456\n")
        monkeypatch.setenv("DEPOT_CONFIG_FILE", str(explicit))

        assert get_settings().server.port == 8456

    def test_missing_explicit_file_falls_through(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        (tmp_path / "config.yaml").write_text("server:\n  port: 8123\n")
        monkeypatch.setenv("DEPOT_CONFIG_FILE", str(tmp_path / "absent.yaml"))

        assert get_settings().server.port == 8123

    def test_settings_are_cached(self):
        assert get_settings() is get_settings()

    def test_invalid_chunk_size(self):
        with pytest.raises(ValueError):
            Settings(sandbox={"chunk_size": 0})


class TestCreateApp:
    def test_requires_root(self):
        with pytest.raises(ValueError, match="root_path"):
            create_app(Settings())

    def test_root_must_exist(self, tmp_path: Path):
        with pytest.raises(ValueError):
            create_app(Settings(sandbox={"root_path": str(tmp_path / "missing")}))

    def test_builds_services(self, test_settings: Settings, sandbox_root: Path):
        app = create_app(test_settings)
        assert app.state.resolver.root == sandbox_root.resolve()
        assert app.state.transfer.chunk_size == 8


class TestConfigureLogging:
    def teardown_method(self):
        structlog.reset_defaults()

    def test_json_output(self, capsys: pytest.CaptureFixture[str]):
        configure_logging(LoggingConfig(level="INFO", json=True))

        structlog.get_logger().info("depot.test", answer=42)

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "depot.test"
        assert record["answer"] == 42
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_level_filtering(self, capsys: pytest.CaptureFixture[str]):
        configure_logging(LoggingConfig(level="WARNING", json=True))

        structlog.get_logger().info("depot.quiet")

        assert "depot.quiet" not in capsys.readouterr().out
