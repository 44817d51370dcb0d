"""
Config system - server presets plus layered loading.

Presets mirror the production / development split of the security layer:
rate limiting, CORS and body size limits. ConfigLoader merges, in order,
JSON files, a .env file, process environment and explicit overrides.
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging
import os

from dotenv import dotenv_values

from .faults import ConfigFault

logger = logging.getLogger("apikit.config")


# ============================================================================
# Typed presets
# ============================================================================

@dataclass(frozen=True)
class RateLimitConfig:
    """
    Rate limiting configuration.

    Attributes:
        max_requests: Requests allowed per client IP within ``window``
        window: Window length in seconds
        max_requests_per_ip: Ceiling reported to operators for a single IP
        ban_threshold: Violations inside the window before the IP is banned
        ban_duration: Ban length in seconds
    """
    max_requests: int
    window: float
    max_requests_per_ip: int
    ban_threshold: int = 5
    ban_duration: float = 3600.0

    @classmethod
    def production(cls) -> "RateLimitConfig":
        return cls(max_requests=100, window=60.0, max_requests_per_ip=1000)

    @classmethod
    def development(cls) -> "RateLimitConfig":
        return cls(max_requests=1000, window=60.0, max_requests_per_ip=10000)


@dataclass(frozen=True)
class CorsConfig:
    """CORS configuration."""
    allowed_origins: List[str]
    allowed_methods: List[str]
    allowed_headers: List[str]
    credentials: bool

    @classmethod
    def production(cls) -> "CorsConfig":
        # Origins must be configured per environment
        return cls(
            allowed_origins=[],
            allowed_methods=["GET", "POST", "PUT", "DELETE"],
            allowed_headers=["Content-Type", "Authorization"],
            credentials=True,
        )

    @classmethod
    def development(cls) -> "CorsConfig":
        return cls(
            allowed_origins=["*"],
            allowed_methods=["*"],
            allowed_headers=["*"],
            credentials=False,
        )


@dataclass(frozen=True)
class ServerConfig:
    """Main server configuration."""
    rate_limit: RateLimitConfig
    cors: CorsConfig
    max_body_size: int
    enable_https: bool
    trusted_proxies: List[str] = field(default_factory=list)
    log_level: str = "info"

    @classmethod
    def production(cls) -> "ServerConfig":
        return cls(
            rate_limit=RateLimitConfig.production(),
            cors=CorsConfig.production(),
            max_body_size=10 * 1024 * 1024,
            enable_https=True,
            trusted_proxies=["127.0.0.1", "10.0.0.0/8"],
            log_level="warning",
        )

    @classmethod
    def development(cls) -> "ServerConfig":
        return cls(
            rate_limit=RateLimitConfig.development(),
            cors=CorsConfig.development(),
            max_body_size=50 * 1024 * 1024,
            enable_https=False,
            trusted_proxies=["*"],
            log_level="debug",
        )


# ============================================================================
# Loader
# ============================================================================

class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > environment variables > .env file > JSON files

    Environment keys use a prefix and ``__`` for nesting, so
    ``APIKIT_RATE_LIMIT__MAX_REQUESTS=50`` becomes
    ``{"rate_limit": {"max_requests": 50}}``.
    """

    def __init__(self, env_prefix: str = "APIKIT_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[List[str]] = None,
        env_prefix: str = "APIKIT_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> "ConfigLoader":
        """
        Load configuration from every source.

        Args:
            paths: JSON config files, merged in order
            env_prefix: Prefix for environment variables
            env_file: Path to .env file (read with python-dotenv)
            overrides: Manual overrides (highest precedence)
            environ: Environment mapping, defaults to ``os.environ``

        Returns:
            Configured ConfigLoader instance
        """
        loader = cls(env_prefix=env_prefix)

        for path in paths or []:
            loader._load_json_file(Path(path))

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    def _load_json_file(self, path: Path):
        if not path.exists():
            logger.debug("Config file %s not found, skipping", path)
            return
        try:
            with open(path) as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigFault(f"Config file {path} is not valid JSON: {e}", path=str(path))
        if not isinstance(data, dict):
            raise ConfigFault(f"Config file {path} must contain a JSON object", path=str(path))
        self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str):
        if not Path(path).exists():
            logger.debug(".env file %s not found, skipping", path)
            return
        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self, environ):
        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert APIKIT_JWT__SECRET to {"jwt": {"secret": ...}}."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        lowered = value.lower()
        if lowered in ("true", "yes", "on"):
            return True
        if lowered in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None) -> Any:
        """Get config value by dot-separated path."""
        current = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def load_server_config(self, environment: Optional[str] = None) -> ServerConfig:
        """
        Build a ServerConfig from a preset plus loaded values.

        ``environment`` (or the ``environment`` key, default "development")
        selects the preset; ``rate_limit``, ``cors`` and top-level fields
        override it.
        """
        environment = environment or self.get("environment", "development")
        if environment in ("production", "prod"):
            base = ServerConfig.production()
        elif environment in ("development", "dev"):
            base = ServerConfig.development()
        else:
            raise ConfigFault(f"Unknown environment '{environment}'", environment=environment)

        try:
            rate_limit = replace(base.rate_limit, **self.get("rate_limit", {}))
            cors = replace(base.cors, **self.get("cors", {}))
            top_level = {
                name: self.config_data[name]
                for name in ("max_body_size", "enable_https", "trusted_proxies", "log_level")
                if name in self.config_data
            }
            return replace(base, rate_limit=rate_limit, cors=cors, **top_level)
        except TypeError as e:
            raise ConfigFault(f"Invalid server configuration: {e}")

    def jwt_settings(self) -> Dict[str, Any]:
        """``{"secret": ..., "exclude_paths": [...]}`` from the ``jwt`` section."""
        section = self.get("jwt", {}) or {}
        exclude = section.get("exclude_paths")
        if isinstance(exclude, str):
            exclude = [p.strip() for p in exclude.split(",") if p.strip()]
        return {"secret": section.get("secret"), "exclude_paths": exclude}
