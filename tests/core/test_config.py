"""Tests for configuration system."""

import os
from dataclasses import dataclass
from pathlib import Path

import pytest
from pydantic import BaseModel

from flymap.core.config import Config, config_properties
from flymap.kernel.exceptions import ConfigurationException


class TestConfig:
    def test_load_from_dict(self):
        config = Config({"app": {"name": "test-service", "port": 8080}})
        assert config.get("app.name") == "test-service"
        assert config.get("app.port") == 8080

    def test_get_with_default(self):
        config = Config({})
        assert config.get("missing.key", "default") == "default"

    def test_get_nested_value(self):
        config = Config({"database": {"pool": {"size": 10}}})
        assert config.get("database.pool.size") == 10

    def test_false_values_are_not_defaulted(self):
        config = Config({"flymap": {"mapper": {"allow_null_collections": False}}})
        assert config.get("flymap.mapper.allow_null_collections", True) is False

    def test_load_from_yaml_file(self, tmp_path: Path):
        config_file = tmp_path / "flymap.yaml"
        config_file.write_text("app:\n  name: my-service\n  port: 9090\n")
        config = Config.from_file(config_file)
        assert config.get("app.name") == "my-service"
        assert str(config_file) in config.loaded_sources

    def test_load_from_toml_file(self, tmp_path: Path):
        config_file = tmp_path / "flymap.toml"
        config_file.write_text('[flymap.mapper]\noptimization = "unsafe"\n')
        config = Config.from_file(config_file)
        assert config.get("flymap.mapper.optimization") == "unsafe"

    def test_file_values_override_packaged_defaults(self, tmp_path: Path):
        config_file = tmp_path / "flymap.yaml"
        config_file.write_text("flymap:\n  mapper:\n    optimization: specialized\n")
        config = Config.from_file(config_file)
        assert config.get("flymap.mapper.optimization") == "specialized"
        assert config.get("flymap.mapper.allow_null_collections") is False

    def test_packaged_defaults(self):
        config = Config.defaults()
        assert config.get("flymap.mapper.optimization") == "none"
        assert config.get("flymap.logging.format") == "console"

    def test_missing_file_without_defaults_is_empty(self, tmp_path: Path):
        config = Config.from_file(tmp_path / "absent.yaml", load_defaults=False)
        assert config.to_dict() == {}

    def test_env_var_override(self):
        os.environ["FLYMAP_APP_NAME"] = "env-service"
        try:
            config = Config({"app": {"name": "file-service"}})
            assert config.get("app.name") == "env-service"
        finally:
            del os.environ["FLYMAP_APP_NAME"]

    def test_env_var_drops_flymap_prefix(self, monkeypatch):
        monkeypatch.setenv("FLYMAP_MAPPER_OPTIMIZATION", "unsafe")
        config = Config({"flymap": {"mapper": {"optimization": "none"}}})
        assert config.get("flymap.mapper.optimization") == "unsafe"

    def test_get_section(self):
        config = Config({"flymap": {"mapper": {"optimization": "pooled"}}})
        assert config.get_section("flymap.mapper") == {"optimization": "pooled"}
        assert config.get_section("flymap.missing") == {}


class TestConfigProperties:
    def test_bind_to_dataclass(self):
        @config_properties(prefix="database")
        @dataclass
        class DatabaseConfig:
            url: str = "sqlite:///test.db"
            pool_size: int = 5

        config = Config({"database": {"url": "postgresql://localhost/mydb", "pool_size": 20}})
        db_config = config.bind(DatabaseConfig)
        assert db_config.url == "postgresql://localhost/mydb"
        assert db_config.pool_size == 20

    def test_bind_uses_defaults(self):
        @config_properties(prefix="database")
        @dataclass
        class DatabaseConfig:
            url: str = "sqlite:///default.db"
            pool_size: int = 5

        db_config = Config({}).bind(DatabaseConfig)
        assert db_config.url == "sqlite:///default.db"
        assert db_config.pool_size == 5

    def test_bind_dataclass_coerces_env_strings(self, monkeypatch):
        @config_properties(prefix="cache")
        @dataclass
        class CacheConfig:
            size: int = 10
            enabled: bool = False

        monkeypatch.setenv("FLYMAP_CACHE_SIZE", "42")
        monkeypatch.setenv("FLYMAP_CACHE_ENABLED", "true")
        cache_config = Config({}).bind(CacheConfig)
        assert cache_config.size == 42
        assert cache_config.enabled is True

    def test_bind_to_pydantic_model(self):
        @config_properties(prefix="service")
        class ServiceConfig(BaseModel):
            name: str = "default"
            retries: int = 3

        bound = Config({"service": {"name": "orders", "retries": "7"}}).bind(ServiceConfig)
        assert bound.name == "orders"
        assert bound.retries == 7

    def test_bind_invalid_pydantic_values(self):
        @config_properties(prefix="service")
        class ServiceConfig(BaseModel):
            retries: int = 3

        with pytest.raises(ConfigurationException) as exc_info:
            Config({"service": {"retries": "many"}}).bind(ServiceConfig)
        assert exc_info.value.code == "INVALID_PROPERTIES"

    def test_bind_undecorated_class(self):
        @dataclass
        class Plain:
            value: int = 0

        with pytest.raises(ConfigurationException) as exc_info:
            Config({}).bind(Plain)
        assert exc_info.value.code == "NOT_BINDABLE"


class TestProfileConfigMerging:
    def test_merge_profile_config(self, tmp_path):
        base = tmp_path / "flymap.yaml"
        base.write_text("server:\n  port: 8080\n  host: localhost\n")

        profile = tmp_path / "flymap-dev.yaml"
        profile.write_text("server:\n  port: 9090\n  debug: true\n")

        config = Config.from_file(base, active_profiles=["dev"])
        assert config.get("server.port") == 9090
        assert config.get("server.host") == "localhost"
        assert config.get("server.debug") is True

    def test_later_profile_wins(self, tmp_path):
        base = tmp_path / "flymap.yaml"
        base.write_text("db:\n  url: base\n")

        dev = tmp_path / "flymap-dev.yaml"
        dev.write_text("db:\n  url: dev-url\n")

        local = tmp_path / "flymap-local.yaml"
        local.write_text("db:\n  url: local-url\n")

        config = Config.from_file(base, active_profiles=["dev", "local"])
        assert config.get("db.url") == "local-url"

    def test_missing_profile_file_is_skipped(self, tmp_path):
        base = tmp_path / "flymap.yaml"
        base.write_text("app:\n  name: test\n")

        config = Config.from_file(base, active_profiles=["nonexistent"])
        assert config.get("app.name") == "test"

    def test_env_vars_still_win(self, tmp_path, monkeypatch):
        base = tmp_path / "flymap.yaml"
        base.write_text("app:\n  name: base\n")

        profile = tmp_path / "flymap-dev.yaml"
        profile.write_text("app:\n  name: dev\n")

        monkeypatch.setenv("FLYMAP_APP_NAME", "env-wins")
        config = Config.from_file(base, active_profiles=["dev"])
        assert config.get("app.name") == "env-wins"
