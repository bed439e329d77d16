"""Tests for CLI configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from sfmc_cleanup.cli.config import Config
from sfmc_cleanup.errors import FatalConfigError
from tests.fixtures.gateway import TENANT_ID, FakeGateway

REQUIRED_ENV = {
    "SFMC_CLIENT_ID": "client",
    "SFMC_CLIENT_SECRET": "secret",
    "SFMC_ACCOUNT_ID": TENANT_ID,
    "SFMC_SUBDOMAIN": "mc1234567890",
}


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.yaml"
    with open(path, "w") as f:
        yaml.dump(
            {
                "client_id": "from-file",
                "account_id": 100012345,
                "protected_de_prefixes": ["SYS_", "CASL_"],
                "batch_size": 5,
                "no_such_setting": True,
            },
            f,
        )
    return path


class TestConfigLoad:
    """Test suite for Config.load."""

    def test_defaults(self) -> None:
        config = Config()

        assert config.batch_size == 10
        assert config.max_delete_batch_size == 50
        assert config.api_rate_limit_delay_ms == 200
        assert config.cache_ttl_hours == 24.0
        assert "SYS_" in config.protected_de_prefixes

    def test_load_from_yaml(self, config_file: Path) -> None:
        config = Config.load(str(config_file), environ={})

        assert config.client_id == "from-file"
        assert config.account_id == "100012345"
        assert config.protected_de_prefixes == ["SYS_", "CASL_"]
        assert config.batch_size == 5

    def test_environment_overrides_file(self, config_file: Path) -> None:
        config = Config.load(
            str(config_file),
            environ={
                "SFMC_CLIENT_ID": "from-env",
                "PROTECTED_DE_PREFIXES": "TMP_, KEEP_",
                "API_RATE_LIMIT_DELAY_MS": "0",
                "CACHE_TTL_HOURS": "0.5",
            },
        )

        assert config.client_id == "from-env"
        assert config.protected_de_prefixes == ["TMP_", "KEEP_"]
        assert config.delay_seconds == 0
        assert config.cache_ttl_seconds == 1800

    def test_invalid_number_is_ignored(self, config_file: Path) -> None:
        config = Config.load(str(config_file), environ={"MAX_DELETE_BATCH_SIZE": "lots"})

        assert config.max_delete_batch_size == 50

    def test_blank_environment_value_is_ignored(self, config_file: Path) -> None:
        config = Config.load(str(config_file), environ={"SFMC_CLIENT_ID": "  "})

        assert config.client_id == "from-file"

    def test_missing_explicit_file(self, tmp_path: Path) -> None:
        with pytest.raises(FatalConfigError, match="not found"):
            Config.load(str(tmp_path / "missing.yaml"), environ={})

    def test_config_path_from_environment(self, config_file: Path) -> None:
        config = Config.load(environ={"SFMC_CLEANUP_CONFIG": str(config_file)})

        assert config.client_id == "from-file"

    def test_malformed_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(FatalConfigError, match="mapping"):
            Config.load(str(path), environ={})


class TestConfigValidate:
    """Test suite for Config.validate."""

    def test_valid(self, config_file: Path) -> None:
        assert Config.load(str(config_file), environ=REQUIRED_ENV).validate() is True

    def test_lists_every_missing_setting(self) -> None:
        config = Config(client_id="client")

        with pytest.raises(FatalConfigError) as exc_info:
            config.validate()

        message = str(exc_info.value)
        assert "SFMC_CLIENT_SECRET" in message
        assert "SFMC_ACCOUNT_ID" in message
        assert "SFMC_SUBDOMAIN" in message
        assert "SFMC_CLIENT_ID" not in message

    def test_auth_url_replaces_subdomain(self) -> None:
        config = Config(client_id="c", client_secret="s", account_id="1", auth_url="https://auth.example.com")

        assert config.validate() is True

    def test_batch_size_above_maximum(self) -> None:
        config = Config(client_id="c", client_secret="s", account_id="1", subdomain="mc", batch_size=60)

        with pytest.raises(FatalConfigError, match="batch_size"):
            config.validate()

    def test_business_unit_allow_list(self) -> None:
        config = Config(
            client_id="c", client_secret="s", account_id="999", subdomain="mc", allowed_business_units=[TENANT_ID]
        )

        with pytest.raises(FatalConfigError, match="ALLOWED_BUSINESS_UNITS"):
            config.validate()
        assert config.is_business_unit_allowed(TENANT_ID) is True

    def test_empty_allow_list_allows_everything(self) -> None:
        assert Config().is_business_unit_allowed("42") is True


class TestConfigGateway:
    """Test suite for Config.create_gateway."""

    def test_factory(self) -> None:
        config = Config(account_id=TENANT_ID, gateway_factory="tests.fixtures.gateway:gateway_factory")

        gateway = config.create_gateway()

        assert isinstance(gateway, FakeGateway)
        assert gateway.tenant_id == TENANT_ID

    def test_no_factory(self) -> None:
        with pytest.raises(FatalConfigError, match="SFMC_GATEWAY_FACTORY"):
            Config().create_gateway()

    def test_malformed_factory(self) -> None:
        with pytest.raises(FatalConfigError, match="module:callable"):
            Config(gateway_factory="tests.fixtures.gateway").create_gateway()

    def test_unknown_factory(self) -> None:
        with pytest.raises(FatalConfigError, match="Cannot load"):
            Config(gateway_factory="tests.fixtures.gateway:no_such_factory").create_gateway()

    def test_factory_must_return_gateway(self) -> None:
        with pytest.raises(FatalConfigError, match="RemoteGateway"):
            Config(gateway_factory="tests.fixtures.gateway:de_payload").create_gateway()


class TestConfigPaths:
    """Test suite for Config directory properties."""

    def test_directories_under_home(self, tmp_path: Path) -> None:
        config = Config(home_dir=str(tmp_path))

        assert config.cache_dir == tmp_path / "cache"
        assert config.audit_dir == tmp_path / "audit"
        assert config.state_dir == tmp_path / "state"
        assert config.backup_dir == tmp_path / "backups"
        assert config.undo_dir == tmp_path / "undo"
        assert config.logs_dir == tmp_path / "logs"
