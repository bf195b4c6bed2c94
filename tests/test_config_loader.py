# tests/test_config_loader.py
import pytest

from workflow_transfer.models.config_models import InstanceConfig, TransferConfig, resolve_env_refs
from workflow_transfer.services import config_loader
from workflow_transfer.services.config_loader import (
    build_service,
    load_transfer_config,
    validate_transfer_config,
)

CONFIG_YAML = """
source:
  url: ${SRC_URL}
  api_key: ${SRC_KEY:-fallback-key}
target:
  url: https://target.example.com
  api_key: target-key
  timeout: 20
run:
  deduplicator: fuzzy
  concurrency_limit: 7
  validators: [schema]
"""


@pytest.fixture
def clean_settings(monkeypatch):
    s = config_loader.settings
    for field in ("source_n8n_url", "source_n8n_api_key", "target_n8n_url", "target_n8n_api_key", "config_file"):
        monkeypatch.setattr(s, field, None)
    monkeypatch.setattr(s, "concurrency_limit", 3)
    monkeypatch.setattr(s, "request_timeout", 10.0)
    return s


class TestTransferConfig:

    def test_env_vars_are_resolved(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SRC_URL", "https://source.example.com")
        monkeypatch.delenv("SRC_KEY", raising=False)
        path = tmp_path / "config.yml"
        path.write_text(CONFIG_YAML)

        config = TransferConfig.from_yaml(str(path))
        assert config.source.url == "https://source.example.com"
        assert config.source.api_key == "fallback-key"
        assert config.target.timeout == 20
        assert config.run.deduplicator == "fuzzy"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            TransferConfig.from_yaml(str(tmp_path / "nope.yml"))

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            TransferConfig.from_yaml(str(path))

    def test_unknown_keys_rejected(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("source:\n  hostname: x\n")
        with pytest.raises(ValueError):
            TransferConfig.from_yaml(str(path))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("source: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid YAML"):
            TransferConfig.from_yaml(path)


class TestResolveEnvRefs:

    def test_whole_value_reference(self, monkeypatch):
        monkeypatch.setenv("N8N_HOST", "n8n.example.com")
        monkeypatch.delenv("MISSING_VAR", raising=False)
        assert resolve_env_refs("${N8N_HOST}") == "n8n.example.com"
        assert resolve_env_refs("${MISSING_VAR}") is None
        assert resolve_env_refs("${MISSING_VAR:-30}") == "30"

    def test_embedded_references(self, monkeypatch):
        monkeypatch.setenv("N8N_HOST", "n8n.example.com")
        monkeypatch.delenv("MISSING_VAR", raising=False)
        assert resolve_env_refs("https://${N8N_HOST}/api") == "https://n8n.example.com/api"
        assert resolve_env_refs("${MISSING_VAR:-http}://${N8N_HOST}") == "http://n8n.example.com"
        assert resolve_env_refs("x${MISSING_VAR}y") == "xy"

    def test_nested_structures_and_plain_values(self, monkeypatch):
        monkeypatch.setenv("N8N_HOST", "h")
        raw = {"a": ["${N8N_HOST}", 3], "b": {"c": True, "d": "plain $ text"}}
        assert resolve_env_refs(raw) == {"a": ["h", 3], "b": {"c": True, "d": "plain $ text"}}


class TestLoadTransferConfig:

    def test_yaml_values_win_over_settings(self, tmp_path, monkeypatch, clean_settings):
        monkeypatch.setenv("SRC_URL", "https://source.example.com")
        monkeypatch.setattr(clean_settings, "target_n8n_url", "https://from-env.example.com")
        path = tmp_path / "config.yml"
        path.write_text(CONFIG_YAML)

        config = load_transfer_config(str(path))
        assert config.target.url == "https://target.example.com"
        assert config.target.timeout == 20
        assert config.source.timeout == 10.0
        assert config.run.concurrency_limit == 7
        assert config.run.validators == ["schema"]

    def test_settings_fill_unset_values(self, monkeypatch, clean_settings):
        monkeypatch.setattr(clean_settings, "source_n8n_url", "https://source.example.com")
        monkeypatch.setattr(clean_settings, "source_n8n_api_key", "source-key")
        monkeypatch.setattr(clean_settings, "concurrency_limit", 9)

        config = load_transfer_config()
        assert config.source.url == "https://source.example.com"
        assert config.source.api_key == "source-key"
        assert config.run.concurrency_limit == 9
        assert config.run.fuzzy_threshold == clean_settings.fuzzy_threshold
        assert config.run.run_options().concurrency_limit == 9


class TestValidateTransferConfig:

    def _config(self, source_url="https://a.example.com", target_url="https://b.example.com"):
        return TransferConfig(
            source=InstanceConfig(url=source_url, api_key="k1"),
            target=InstanceConfig(url=target_url, api_key="k2"),
        )

    def test_complete_config(self):
        assert validate_transfer_config(self._config()) == []

    def test_missing_values_are_listed(self):
        config = TransferConfig(source=InstanceConfig(url="https://a.example.com"))
        with pytest.raises(ValueError) as exc_info:
            validate_transfer_config(config)
        message = str(exc_info.value)
        assert "SOURCE_N8N_API_KEY" in message
        assert "TARGET_N8N_URL" in message

    def test_target_optional_for_validation(self):
        config = TransferConfig(source=InstanceConfig(url="https://a.example.com", api_key="k"))
        assert validate_transfer_config(config, require_target=False) == []

    def test_same_instance_warns(self):
        warnings = validate_transfer_config(self._config(target_url="https://a.example.com/"))
        assert len(warnings) == 1
        assert "same instance" in warnings[0]

    def test_build_service(self):
        instance = InstanceConfig(url="https://a.example.com", api_key="k", timeout=4, cache_ttl_seconds=30)
        service = build_service(instance, "source")
        assert service.name == "source"
        assert service.cache.ttl_seconds == 30
