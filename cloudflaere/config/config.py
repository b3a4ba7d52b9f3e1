"""
Configuration module for Cloudflaere.
"""

import os
import re
import socket
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from cloudflaere.models.errors import ConfigError
from cloudflaere.models.models import ownership_marker, record_type_for

# Dotted configuration key -> Config field
KEY_MAP = {
    "interval": "interval",
    "instance": "instance",
    "proxied": "proxied",
    "verbose": "verbose",
    "once": "once",
    "dry_run": "dry_run",
    "logging.level": "log_level",
    "cloudflare.zone": "cloudflare_zone_token",
    "cloudflare.dns": "cloudflare_dns_token",
    "cloudflare.zones": "cloudflare_zones",
    "cloudflare.timeout": "cloudflare_timeout",
    "traefik.url": "traefik_url",
    "traefik.verify_tls": "traefik_verify_tls",
    "traefik.timeout": "traefik_timeout",
    "ddns.ipv4": "ddns_ipv4",
    "ddns.ipv6": "ddns_ipv6",
    "ddns.timeout": "ddns_timeout",
    "targets.ipv4": "target_ipv4",
    "targets.ipv6": "target_ipv6",
    "health.enabled": "health_enabled",
    "health.host": "health_host",
    "health.port": "health_port",
}

SECRET_FIELDS = ("cloudflare_zone_token", "cloudflare_dns_token")

DURATION_PART = re.compile(r"(\d+)([smhd])")
DURATION_UNITS = {"s": 1, "m": 60, "h": 60 * 60, "d": 60 * 60 * 24}


class Config(BaseModel):
    """Configuration for Cloudflaere."""

    # Controller configuration
    interval: Union[str, float] = "1m"
    instance: str = ""
    proxied: bool = False
    once: bool = False
    dry_run: bool = False

    # Logging configuration
    verbose: bool = False
    log_level: str = "info"

    # Cloudflare configuration
    cloudflare_zone_token: str = ""
    cloudflare_dns_token: str = ""
    cloudflare_zones: List[str] = Field(default_factory=list)
    cloudflare_timeout: Union[str, float] = "30s"

    # Traefik configuration
    traefik_url: str = ""
    traefik_verify_tls: bool = True
    traefik_timeout: Union[str, float] = "10s"

    # Dynamic DNS configuration
    ddns_ipv4: bool = False
    ddns_ipv6: bool = False
    ddns_timeout: Union[str, float] = "10s"

    # Static targets, used for families without dynamic lookup
    target_ipv4: str = ""
    target_ipv6: str = ""

    # Health check configuration
    health_enabled: bool = False
    health_host: str = "0.0.0.0"
    health_port: int = 8080

    @classmethod
    def load(
        cls,
        config_path: Optional[Union[str, Path]] = None,
        overrides: Optional[Dict[str, Any]] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> "Config":
        """
        Load configuration from a YAML file, the environment and overrides.

        Later sources win: file, then environment, then overrides.

        Args:
            config_path: Path to the YAML configuration file
            overrides: Dotted keys to values, usually from the command line
            environ: Environment mapping, defaults to os.environ

        Returns:
            Config: Config instance
        """
        environ = os.environ if environ is None else environ

        flat_config = cls._flatten_config(cls._read_yaml(config_path, environ))
        flat_config.update(cls._from_environment(environ))
        for key, value in (overrides or {}).items():
            if value is None:
                continue
            if key not in KEY_MAP:
                raise ConfigError(f"Unknown configuration key: {key}")
            flat_config[KEY_MAP[key]] = value

        try:
            return cls(**flat_config)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    @classmethod
    def _read_yaml(
        cls, config_path: Optional[Union[str, Path]], environ: Dict[str, str]
    ) -> dict:
        # Default configuration paths to check
        default_paths = [
            Path("./cloudflaere.yaml"),
            Path("./cloudflaere.yml"),
            Path("~/.cloudflaere/cloudflaere.yaml").expanduser(),
            Path("/etc/cloudflaere/cloudflaere.yaml"),
            Path("~/.config/cloudflaere/cloudflaere.yaml").expanduser(),
        ]

        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ConfigError(f"Configuration file not found: {path}")
            paths = [path]
        else:
            paths = default_paths

        for path in paths:
            if path.exists():
                with open(path, "r") as f:
                    yaml_content = cls._substitute_env_vars(f.read(), environ)
                try:
                    config_data = yaml.safe_load(yaml_content) or {}
                except yaml.YAMLError as e:
                    raise ConfigError(
                        f"Could not parse configuration file {path}: {e}"
                    ) from e
                if not isinstance(config_data, dict):
                    raise ConfigError(
                        f"Configuration file {path} must contain a mapping"
                    )
                return config_data
        return {}

    @staticmethod
    def _substitute_env_vars(content: str, environ: Dict[str, str]) -> str:
        """
        Substitute environment variables in the configuration content.

        Args:
            content: Configuration content
            environ: Environment mapping

        Returns:
            str: Configuration content with environment variables substituted
        """
        # Pattern for ${ENV_VAR} or ${ENV_VAR:-default}
        pattern = r"\${([^}]+)}"

        def replace_env_var(match):
            env_var = match.group(1)
            if ":-" in env_var:
                env_var, default = env_var.split(":-", 1)
                return environ.get(env_var, default)
            return environ.get(env_var, "")

        return re.sub(pattern, replace_env_var, content)

    @staticmethod
    def _flatten_config(config_data: dict) -> dict:
        """
        Flatten nested configuration.

        Args:
            config_data: Nested configuration data

        Returns:
            dict: Flattened configuration data, only keys that were present
        """
        flat_config = {}
        for dotted, field_name in KEY_MAP.items():
            node: Any = config_data
            for part in dotted.split("."):
                if not isinstance(node, dict) or part not in node:
                    break
                node = node[part]
            else:
                if node is not None:
                    flat_config[field_name] = node
        return flat_config

    @staticmethod
    def _from_environment(environ: Dict[str, str]) -> dict:
        """
        Read overrides from environment variables such as TRAEFIK_URL.
        """
        flat_config = {}
        for dotted, field_name in KEY_MAP.items():
            env_name = dotted.replace(".", "_").upper()
            value = environ.get(env_name)
            if value is None or value == "":
                continue
            if field_name == "cloudflare_zones":
                flat_config[field_name] = [
                    z.strip() for z in value.split(",") if z.strip()
                ]
            else:
                flat_config[field_name] = value
        return flat_config

    def validate_required(self) -> None:
        """
        Check that everything needed to run is configured.

        Raises:
            ConfigError: If a required option is missing or invalid
        """
        if not (self.cloudflare_zone_token or self.cloudflare_dns_token):
            raise ConfigError(
                "A Cloudflare API token is required (cloudflare.zone / cloudflare.dns)"
            )
        if not self.traefik_url:
            raise ConfigError("A Traefik URL is required (traefik.url)")
        for name, value, expected in (
            ("targets.ipv4", self.target_ipv4, "A"),
            ("targets.ipv6", self.target_ipv6, "AAAA"),
        ):
            if not value:
                continue
            try:
                record_type = record_type_for(value)
            except ValueError as e:
                raise ConfigError(f"{name} is not a valid IP address: {value}") from e
            if record_type != expected:
                raise ConfigError(f"{name} has the wrong address family: {value}")
        durations = (
            "interval",
            "cloudflare_timeout",
            "traefik_timeout",
            "ddns_timeout",
        )
        for name in durations:
            if self.parse_duration(getattr(self, name)) <= 0:
                raise ConfigError(f"{name} must be a positive duration")

    @property
    def instance_name(self) -> str:
        return self.instance or socket.gethostname()

    @property
    def marker(self) -> str:
        return ownership_marker(self.instance_name)

    @property
    def zone_token(self) -> str:
        return self.cloudflare_zone_token or self.cloudflare_dns_token

    @property
    def dns_token(self) -> str:
        return self.cloudflare_dns_token or self.cloudflare_zone_token

    def redacted(self) -> Dict[str, Any]:
        """
        Return the configuration as a dict with secrets masked.
        """
        data = self.model_dump()
        for name in SECRET_FIELDS:
            if data.get(name):
                data[name] = "***"
        data["instance"] = self.instance_name
        return data

    @staticmethod
    def parse_duration(duration: Union[str, int, float]) -> float:
        """
        Parse a duration string like '15m' or '1h30m' into seconds.

        Args:
            duration: Duration string or number of seconds

        Returns:
            float: Duration in seconds

        Raises:
            ConfigError: If the duration cannot be parsed
        """
        if isinstance(duration, (int, float)):
            return float(duration)

        text = (duration or "").strip().lower()
        if not text:
            raise ConfigError("Empty duration")

        # Bare number, assume seconds
        try:
            return float(text)
        except ValueError:
            pass

        if not re.fullmatch(r"(\d+[smhd])+", text):
            raise ConfigError(f"Invalid duration: {duration!r}")

        return float(
            sum(
                int(value) * DURATION_UNITS[unit]
                for value, unit in DURATION_PART.findall(text)
            )
        )
