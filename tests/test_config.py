"""Tests for configuration loading."""

from __future__ import annotations

import json

import pytest

from signgate.infrastructure.config import (
    ConfigError,
    ConfigManager,
    ConfigProfile,
    ConfigSchema,
    ConfigSourceError,
    ConfigValidationError,
    ConfigValidator,
    EnvConfigSource,
    Environment,
    FileConfigSource,
    create_default_schema,
    get_config,
    load_config,
)


class TestEnvironment:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("prod", Environment.PRODUCTION),
            ("Staging", Environment.STAGING),
            ("test", Environment.TESTING),
            ("whatever", Environment.DEVELOPMENT),
        ],
    )
    def test_from_string(self, value, expected) -> None:
        assert Environment.from_string(value) == expected

    def test_current(self, monkeypatch) -> None:
        assert Environment.current() == Environment.DEVELOPMENT

        monkeypatch.setenv("SIGNGATE_ENV", "production")

        assert Environment.current() == Environment.PRODUCTION
        assert Environment.current().is_production


class TestEnvConfigSource:
    def test_nests_on_separator(self) -> None:
        source = EnvConfigSource(
            environ={
                "SIGNGATE_STATE_BACKEND": "memory",
                "SIGNGATE_VERIFIER_TIMEOUT": "2.5",
                "OTHER_STATE_BACKEND": "ignored",
            }
        )

        assert source.load() == {"state": {"backend": "memory"}, "verifier": {"timeout": 2.5}}

    @pytest.mark.parametrize(
        "raw, parsed",
        [("true", True), ("off", False), ("none", None), ("12", 12), ('["a"]', ["a"]), ("text", "text")],
    )
    def test_value_parsing(self, raw, parsed) -> None:
        assert EnvConfigSource(environ={"SIGNGATE_X": raw}).load() == {"x": parsed}


class TestFileConfigSource:
    def test_yaml(self, tmp_path) -> None:
        path = tmp_path / "base.yaml"
        path.write_text("registry:\n  backend: memory\n")

        assert FileConfigSource(path).load() == {"registry": {"backend": "memory"}}

    def test_toml(self, tmp_path) -> None:
        path = tmp_path / "base.toml"
        path.write_text('[state]\npath = "/var/lib/signgate"\n')

        assert FileConfigSource(path).load() == {"state": {"path": "/var/lib/signgate"}}

    def test_json(self, tmp_path) -> None:
        path = tmp_path / "base.json"
        path.write_text(json.dumps({"runner": {"max_workers": 8}}))

        assert FileConfigSource(path).load() == {"runner": {"max_workers": 8}}

    def test_missing_optional(self, tmp_path) -> None:
        assert FileConfigSource(tmp_path / "absent.yaml").load() == {}

    def test_missing_required(self, tmp_path) -> None:
        with pytest.raises(ConfigSourceError):
            FileConfigSource(tmp_path / "absent.yaml", required=True).load()

    def test_parse_error(self, tmp_path) -> None:
        path = tmp_path / "base.yaml"
        path.write_text("registry: [unclosed\n")

        with pytest.raises(ConfigSourceError, match="Failed to parse"):
            FileConfigSource(path).load()

    def test_root_must_be_mapping(self, tmp_path) -> None:
        path = tmp_path / "base.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigSourceError):
            FileConfigSource(path).load()

    def test_unsupported_format(self, tmp_path) -> None:
        path = tmp_path / "base.ini"
        path.write_text("[x]\n")

        with pytest.raises(ConfigSourceError):
            FileConfigSource(path).load()


class TestValidation:
    def test_defaults_are_valid(self) -> None:
        schema = create_default_schema()

        assert ConfigValidator(schema).validate(schema.defaults()) == []

    def test_choice_violation(self) -> None:
        errors = ConfigValidator(create_default_schema()).validate({"state": {"backend": "redis"}})

        assert errors == ["Field 'state.backend' must be one of ['filesystem', 'memory']"]

    def test_extraction_backend_choices(self) -> None:
        schema = create_default_schema()

        assert schema.defaults()["extraction"]["backend"] == "filesystem"
        assert ConfigValidator(schema).validate({"extraction": {"backend": "s3"}}) == [
            "Field 'extraction.backend' must be one of ['filesystem', 'memory']"
        ]

    def test_bool_is_not_a_number(self) -> None:
        errors = ConfigValidator(create_default_schema()).validate({"verifier": {"timeout": True}})

        assert len(errors) == 1
        assert "verifier.timeout" in errors[0]

    def test_range(self) -> None:
        errors = ConfigValidator(create_default_schema()).validate({"runner": {"max_workers": 0}})

        assert errors == ["Field 'runner.max_workers' must be >= 1"]

    def test_required(self) -> None:
        schema = ConfigSchema().add_field("registry.path", str, required=True)

        assert ConfigValidator(schema).validate({}) == ["Required field 'registry.path' is missing"]


class TestConfigManager:
    def test_priority_order(self, tmp_path) -> None:
        (tmp_path / "base.yaml").write_text("state:\n  backend: filesystem\n  path: base\n")
        (tmp_path / "local.yaml").write_text("state:\n  path: local\n")

        manager = ConfigManager(environment=Environment.TESTING)
        manager.add_source(EnvConfigSource(environ={"SIGNGATE_STATE_BACKEND": "memory"}))
        manager.add_source(FileConfigSource(tmp_path / "local.yaml", priority=30))
        manager.add_source(FileConfigSource(tmp_path / "base.yaml", priority=10))
        manager.set_schema(create_default_schema())

        config = manager.load()

        assert config.get_str("state.backend") == "memory"
        assert config.get_str("state.path") == "local"
        assert config.get_int("runner.max_workers") == 4
        assert config.environment == Environment.TESTING

    def test_invalid_configuration(self) -> None:
        manager = ConfigManager(environment=Environment.TESTING)
        manager.add_source(EnvConfigSource(environ={"SIGNGATE_REGISTRY_BACKEND": "redis"}))
        manager.set_schema(create_default_schema())

        with pytest.raises(ConfigValidationError) as exc_info:
            manager.load()

        assert len(exc_info.value.errors) == 1
        assert manager.load(validate=False).get_str("registry.backend") == "redis"


class TestConfigProfile:
    def test_typed_access(self) -> None:
        profile = ConfigProfile(
            {"verifier": {"timeout": "3"}, "runner": {"max_workers": "x"}, "flags": {"on": "yes"}}
        )

        assert profile.get_float("verifier.timeout") == 3.0
        assert profile.get_float("verifier.missing") is None
        assert profile.get_int("runner.max_workers", 4) == 4
        assert profile.get_bool("flags.on")
        assert profile.get_dict("verifier") == {"timeout": "3"}
        assert "verifier.timeout" in profile

    def test_required_lookup(self) -> None:
        profile = ConfigProfile({})

        with pytest.raises(ConfigError):
            profile.get("registry.path", required=True)
        with pytest.raises(KeyError):
            profile["registry.path"]


class TestLoadConfig:
    def test_environment_file_overrides_base(self, tmp_path) -> None:
        (tmp_path / "base.yaml").write_text("registry:\n  path: /srv/base\n")
        (tmp_path / "production.yml").write_text("registry:\n  path: /srv/prod\n")

        assert load_config(config_path=tmp_path).get_str("registry.path") == "/srv/base"
        assert load_config(environment="prod", config_path=tmp_path).get_str("registry.path") == "/srv/prod"

    def test_env_vars_win(self, tmp_path, monkeypatch) -> None:
        (tmp_path / "base.yaml").write_text("registry:\n  path: /srv/base\n")
        monkeypatch.setenv("SIGNGATE_REGISTRY_PATH", "/srv/env")

        assert load_config(config_path=tmp_path).get_str("registry.path") == "/srv/env"

    def test_becomes_global(self, monkeypatch) -> None:
        monkeypatch.setenv("SIGNGATE_STATE_BACKEND", "memory")

        load_config()
        monkeypatch.delenv("SIGNGATE_STATE_BACKEND")

        assert get_config().get_str("state.backend") == "memory"

    def test_defaults_without_files(self) -> None:
        config = get_config()

        assert config.get_str("logging.level") == "INFO"
        assert config.get_str("extraction.path") == ".signgate/certificates"
        assert config.get_float("verifier.timeout") is None
