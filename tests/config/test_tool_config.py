"""Tests for YAML configuration loading and the config -> kernel bridges."""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from tool_config import CONFIG_ENV_VAR, DATABASE_URL_ENV_VAR, get_active_settings
from tool_config.bridges import build_database, build_lifecycle_service
from tool_config.loader import load_yaml_file, parse_settings
from tool_config.schema import ToolKernelSettings
from tool_kernel.domain.tool_state import ToolState


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv(DATABASE_URL_ENV_VAR, raising=False)


def _write(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "tooling.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaultSet:
    def test_packaged_defaults(self):
        settings = get_active_settings()

        assert settings.name == "default"
        assert settings.costing.adjustment_tolerance == Decimal("0.01")
        assert settings.tooling.default_unmount_state == "sharpened"
        assert settings.tooling.code_sequence_width == 6
        assert settings.database.transaction_timeout_ms == 10_000
        assert settings.database.lock_timeout_ms == 5_000
        assert settings.logging.level == "INFO"

    def test_database_url_from_environment(self, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV_VAR, "postgresql://tools@db/tools")

        settings = get_active_settings()

        assert settings.database.url == "postgresql://tools@db/tools"
        assert settings.database.pool_size == 20

    def test_config_file_from_environment(self, monkeypatch, tmp_path):
        path = _write(tmp_path, {"name": "plant-2", "tooling": {"code_sequence_width": 4}})
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

        settings = get_active_settings()

        assert settings.name == "plant-2"
        assert settings.tooling.code_sequence_width == 4

    def test_explicit_path_wins(self, monkeypatch, tmp_path):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(tmp_path / "missing.yaml"))
        path = _write(tmp_path, {"name": "explicit"})

        assert get_active_settings(path).name == "explicit"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_settings(tmp_path / "missing.yaml")


class TestParsing:
    def test_empty_document_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_yaml_file(path) == {}
        assert parse_settings({}) == ToolKernelSettings()

    def test_numeric_tolerance_keeps_literal_value(self):
        settings = parse_settings({"costing": {"adjustment_tolerance": 0.05}})

        assert settings.costing.adjustment_tolerance == Decimal("0.05")

    @pytest.mark.parametrize(
        "data",
        [
            {"costing": {"adjustment_tolerance": "-1"}},
            {"costing": {"adjustment_tolerance": "lots"}},
            {"tooling": {"default_unmount_state": "broken"}},
            {"tooling": {"code_sequence_width": 0}},
            {"database": {"lock_timeout_ms": -5}},
            {"logging": {"level": "CHATTY"}},
        ],
    )
    def test_invalid_values(self, data):
        with pytest.raises(ValueError):
            parse_settings(data)

    def test_level_normalized(self):
        assert parse_settings({"logging": {"level": "debug"}}).logging.level == "DEBUG"


class TestBridges:
    def test_build_lifecycle_service(self):
        settings = parse_settings(
            {
                "database": {"url": "sqlite://"},
                "costing": {"adjustment_tolerance": "0.5"},
                "tooling": {"default_unmount_state": "new", "code_sequence_width": 3},
            }
        )
        database = build_database(settings)
        database.create_tables()
        try:
            service = build_lifecycle_service(settings, database=database)

            assert service._tolerance == Decimal("0.5")
            assert service._default_unmount_state is ToolState.NEW
            assert service._code_width == 3
            assert service.list_available_tools().value == []
        finally:
            database.drop_tables()
            database.dispose()

    def test_build_database_uses_timeouts(self):
        settings = parse_settings(
            {"database": {"url": "sqlite://", "transaction_timeout_ms": 2000, "lock_timeout_ms": 750}}
        )
        database = build_database(settings)
        try:
            assert database.dialect_name == "sqlite"
            assert database.transaction_timeout_ms == 2000
            assert database.lock_timeout_ms == 750
        finally:
            database.dispose()
