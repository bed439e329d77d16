"""CLI configuration.

Values come from an optional YAML file and are then overridden by environment
variables:

    # ~/.sfmc-cleanup/config.yaml
    client_id: abc123
    subdomain: mc1234567890
    account_id: "100012345"
    protected_de_prefixes: [SYS_, CASL_]
    batch_size: 10
    gateway_factory: my_transport.gateway:create_gateway
"""

from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from ..errors import FatalConfigError
from ..gateway.base import RemoteGateway
from ..safety.checker import DEFAULT_PROTECTED_DE_PREFIXES, DEFAULT_PROTECTED_FOLDER_PATTERNS

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".sfmc-cleanup"

# Environment variable -> (field name, type)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SFMC_CLIENT_ID": ("client_id", "str"),
    "SFMC_CLIENT_SECRET": ("client_secret", "str"),
    "SFMC_ACCOUNT_ID": ("account_id", "str"),
    "SFMC_SUBDOMAIN": ("subdomain", "str"),
    "SFMC_AUTH_URL": ("auth_url", "str"),
    "SFMC_SOAP_URL": ("soap_url", "str"),
    "SFMC_REST_URL": ("rest_url", "str"),
    "PROTECTED_FOLDER_PATTERNS": ("protected_folder_patterns", "list"),
    "PROTECTED_DE_PREFIXES": ("protected_de_prefixes", "list"),
    "MAX_DELETE_BATCH_SIZE": ("max_delete_batch_size", "int"),
    "API_RATE_LIMIT_DELAY_MS": ("api_rate_limit_delay_ms", "int"),
    "ALLOWED_BUSINESS_UNITS": ("allowed_business_units", "list"),
    "LOG_LEVEL": ("log_level", "str"),
    "WEBHOOK_URL": ("webhook_url", "str"),
    "WEBHOOK_TIMEOUT_MS": ("webhook_timeout_ms", "int"),
    "CACHE_TTL_HOURS": ("cache_ttl_hours", "float"),
    "DEPENDENCY_CONCURRENCY": ("dependency_concurrency", "int"),
    "STALE_DAYS": ("stale_days", "int"),
    "SFMC_CLEANUP_HOME": ("home_dir", "str"),
    "SFMC_GATEWAY_FACTORY": ("gateway_factory", "str"),
}


def _parse_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item).strip() for item in value if str(item).strip()]


@dataclass
class Config:
    """Runtime configuration.

    Attributes:
        client_id: API client ID
        client_secret: API client secret
        account_id: Business unit (MID) the run executes against
        subdomain: Tenant-specific API subdomain
        protected_folder_patterns: Substrings protecting folders by name
        protected_de_prefixes: Prefixes protecting data extensions by name or key
        batch_size: Default deletions between checkpoints
        max_delete_batch_size: Upper bound for ``batch_size``
        api_rate_limit_delay_ms: Pause between delete calls
        allowed_business_units: If set, only these business units may be targeted
        cache_ttl_hours: Maximum age of the on-disk folder cache
        dependency_concurrency: Parallel dependency lookups
        stale_days: Inactivity threshold of the dependency analysis
        home_dir: Base directory for cache, audit, state, backups and logs
        gateway_factory: ``module:callable`` producing the remote gateway
    """

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    account_id: Optional[str] = None
    subdomain: Optional[str] = None
    auth_url: Optional[str] = None
    soap_url: Optional[str] = None
    rest_url: Optional[str] = None
    protected_folder_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_PROTECTED_FOLDER_PATTERNS))
    protected_de_prefixes: list[str] = field(default_factory=lambda: list(DEFAULT_PROTECTED_DE_PREFIXES))
    batch_size: int = 10
    max_delete_batch_size: int = 50
    api_rate_limit_delay_ms: int = 200
    allowed_business_units: list[str] = field(default_factory=list)
    log_level: str = "INFO"
    webhook_url: Optional[str] = None
    webhook_timeout_ms: int = 10000
    cache_ttl_hours: float = 24.0
    dependency_concurrency: int = 10
    stale_days: int = 365
    max_items_to_display: int = 20
    home_dir: str = str(DEFAULT_HOME)
    gateway_factory: Optional[str] = None

    @classmethod
    def load(cls, path: Optional[str] = None, environ: Optional[dict[str, str]] = None) -> "Config":
        """Load configuration from YAML and environment variables.

        Args:
            path: Config file, defaults to $SFMC_CLEANUP_CONFIG or ~/.sfmc-cleanup/config.yaml
            environ: Environment mapping (default: os.environ)

        Returns:
            Config with environment overrides applied

        Raises:
            FatalConfigError: If an explicitly given config file is missing or malformed
        """
        environ = dict(os.environ if environ is None else environ)
        explicit = path or environ.get("SFMC_CLEANUP_CONFIG")
        config_path = Path(explicit) if explicit else DEFAULT_HOME / "config.yaml"

        data: dict[str, Any] = {}
        if config_path.exists():
            try:
                with open(config_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise FatalConfigError(f"Invalid config file {config_path}: {e}") from e
            if not isinstance(data, dict):
                raise FatalConfigError(f"Config file {config_path} must contain a mapping")
            logger.debug(f"Loaded config from {config_path}")
        elif explicit:
            raise FatalConfigError(f"Config file not found: {config_path}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")

        values = {key: value for key, value in data.items() if key in known}
        for key in ("protected_folder_patterns", "protected_de_prefixes", "allowed_business_units"):
            if key in values:
                values[key] = _parse_list(values[key])
        if values.get("account_id") is not None:
            values["account_id"] = str(values["account_id"])

        config = cls(**values)
        config._apply_env(environ)
        return config

    def _apply_env(self, environ: dict[str, str]) -> None:
        for env_name, (attr, kind) in _ENV_OVERRIDES.items():
            raw = environ.get(env_name)
            if raw is None or raw.strip() == "":
                continue
            try:
                if kind == "list":
                    value: Any = _parse_list(raw)
                elif kind == "int":
                    value = int(raw)
                elif kind == "float":
                    value = float(raw)
                else:
                    value = raw.strip()
            except ValueError:
                logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")
                continue
            setattr(self, attr, value)

    def validate(self) -> bool:
        """Check required settings before any network call.

        Raises:
            FatalConfigError: Listing every missing or invalid setting
        """
        problems = []
        required = {
            "SFMC_CLIENT_ID": self.client_id,
            "SFMC_CLIENT_SECRET": self.client_secret,
            "SFMC_ACCOUNT_ID": self.account_id,
            "SFMC_SUBDOMAIN": self.subdomain or self.auth_url,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            problems.append(f"Missing required configuration: {', '.join(missing)}")

        if self.max_delete_batch_size < 1:
            problems.append("MAX_DELETE_BATCH_SIZE must be >= 1")
        if not 1 <= self.batch_size <= self.max_delete_batch_size:
            problems.append(f"batch_size must be between 1 and {self.max_delete_batch_size}")
        if self.api_rate_limit_delay_ms < 0:
            problems.append("API_RATE_LIMIT_DELAY_MS must be >= 0")
        if self.dependency_concurrency < 1:
            problems.append("DEPENDENCY_CONCURRENCY must be >= 1")

        if self.account_id and not self.is_business_unit_allowed(self.account_id):
            problems.append(f"Business unit {self.account_id} is not in ALLOWED_BUSINESS_UNITS")

        if problems:
            raise FatalConfigError("; ".join(problems))
        return True

    def is_business_unit_allowed(self, mid: str) -> bool:
        if not self.allowed_business_units:
            return True
        return str(mid) in self.allowed_business_units

    @property
    def delay_seconds(self) -> float:
        return self.api_rate_limit_delay_ms / 1000.0

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_hours * 3600

    @property
    def home(self) -> Path:
        return Path(self.home_dir).expanduser()

    @property
    def cache_dir(self) -> Path:
        return self.home / "cache"

    @property
    def audit_dir(self) -> Path:
        return self.home / "audit"

    @property
    def state_dir(self) -> Path:
        return self.home / "state"

    @property
    def backup_dir(self) -> Path:
        return self.home / "backups"

    @property
    def undo_dir(self) -> Path:
        return self.home / "undo"

    @property
    def logs_dir(self) -> Path:
        return self.home / "logs"

    def create_gateway(self) -> RemoteGateway:
        """Build the remote gateway from ``gateway_factory``.

        Raises:
            FatalConfigError: If no factory is configured or it cannot be loaded
        """
        if not self.gateway_factory:
            raise FatalConfigError("No gateway configured. Set SFMC_GATEWAY_FACTORY to 'module:callable'")

        module_name, _, attr = self.gateway_factory.partition(":")
        if not module_name or not attr:
            raise FatalConfigError(f"Invalid gateway factory '{self.gateway_factory}', expected 'module:callable'")

        try:
            factory = getattr(importlib.import_module(module_name), attr)
        except (ImportError, AttributeError) as e:
            raise FatalConfigError(f"Cannot load gateway factory '{self.gateway_factory}': {e}") from e

        gateway = factory(self)
        if not isinstance(gateway, RemoteGateway):
            raise FatalConfigError(f"Gateway factory '{self.gateway_factory}' did not return a RemoteGateway")
        if not gateway.tenant_id:
            gateway.tenant_id = str(self.account_id or "")
        return gateway
