"""Configuration management for snaprotator."""

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml

from .errors import ErrorKind, RotatorError

CONFIG_FILE_NAME = "app-config.yaml"
DEFAULT_LOG_FILE = "log/log.txt"
DEFAULT_LOG_MAX_LENGTH = 1024000

REDACTED = "********"


@dataclass(frozen=True)
class RetentionPolicy:
    """Minimum number of snapshots to keep for one virtual machine."""

    vm_name: str
    min_snapshot_count: int


@dataclass(frozen=True)
class EmailConfig:
    """SMTP settings for email reports."""

    notification_emails: List[str]
    smtp_username: str
    smtp_password: str
    smtp_host: str
    smtp_port: int
    smtp_starttls: bool = False


def resolve_config_path(config_path: Optional[str] = None) -> Path:
    """Find the configuration file to load.

    Args:
        config_path: Explicit path given on the command line

    Returns:
        Path to the configuration file
    """
    if config_path:
        return Path(config_path)

    if os.environ.get("SNAPROTATOR_CONFIG"):
        return Path(os.environ["SNAPROTATOR_CONFIG"])

    config_directory = os.environ.get("CONFIG_DIRECTORY")
    if config_directory:
        return Path(config_directory) / CONFIG_FILE_NAME

    return Path.cwd() / CONFIG_FILE_NAME


class Config:
    """Configuration manager for snaprotator."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration.

        Args:
            config_path: Path to custom configuration file
        """
        self.config_path = resolve_config_path(config_path)
        self._config = self._load_config()
        self._validate()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file."""
        if not self.config_path.exists():
            raise RotatorError(
                ErrorKind.IO,
                f"The `{self.config_path.name}` file is missing ({self.config_path})."
            )

        # JSON configs from older deployments are valid YAML
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise RotatorError(ErrorKind.DATA_FORMAT, f"Invalid configuration file: {e}", cause=e) from e

        if not isinstance(config, dict):
            raise RotatorError(ErrorKind.DATA_FORMAT, "The configuration file must contain a mapping.")

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides."""
        env_mappings = {
            'SNAPROTATOR_HOSTNAME': ['hostname'],
            'SNAPROTATOR_SENTRY_DSN': ['sentry_dsn'],
            'SNAPROTATOR_LOG_FILE': ['logging', 'file'],
            'SNAPROTATOR_LOG_MAX_LENGTH': ['logging', 'max_length'],
        }

        for env_var, config_path in env_mappings.items():
            if env_var in os.environ:
                value = os.environ[env_var]
                if config_path[-1] == 'max_length':
                    try:
                        value = int(value)
                    except ValueError as e:
                        raise RotatorError(
                            ErrorKind.DATA_FORMAT, f"{env_var} must be an integer, got {value!r}", cause=e
                        ) from e

                current = config
                for key in config_path[:-1]:
                    if not isinstance(current.get(key), dict):
                        current[key] = {}
                    current = current[key]
                current[config_path[-1]] = value

        return config

    def _validate(self) -> None:
        for key in ('hostname', 'sentry_dsn', 'email_config'):
            if key not in self._config:
                raise RotatorError(ErrorKind.DATA_FORMAT, f"Missing configuration key: {key}")

        # Build typed views once so malformed values fail at startup
        self.email_config
        self.retention_policies
        self.log_max_length

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., 'email_config.smtp_host')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key.split('.')
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def redacted(self) -> Dict[str, Any]:
        """Configuration with credentials masked, safe to print or email."""
        data = copy.deepcopy(self._config)

        email = data.get('email_config')
        if isinstance(email, dict) and 'smtp_password' in email:
            email['smtp_password'] = REDACTED

        dsn = data.get('sentry_dsn')
        if isinstance(dsn, str) and '@' in dsn:
            scheme, _, rest = dsn.partition('://')
            data['sentry_dsn'] = f"{scheme}://{REDACTED}@{rest.split('@', 1)[1]}"

        return data

    @property
    def config_directory(self) -> Path:
        """Directory holding the configuration file."""
        return self.config_path.resolve().parent

    @property
    def hostname(self) -> str:
        """Get the host identity used in reports."""
        return str(self.get('hostname'))

    @property
    def sentry_dsn(self) -> str:
        """Get the crash-reporting connection string."""
        return str(self.get('sentry_dsn'))

    @property
    def log_file(self) -> Path:
        """Get log file path, relative paths resolve against the config directory."""
        path = Path(self.get('logging.file', DEFAULT_LOG_FILE))
        if not path.is_absolute():
            path = self.config_directory / path
        return path

    @property
    def log_max_length(self) -> int:
        """Get the byte length at which the log file is rotated."""
        value = self.get('logging.max_length', DEFAULT_LOG_MAX_LENGTH)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise RotatorError(ErrorKind.DATA_FORMAT, f"logging.max_length must be a positive integer, got {value!r}")
        return value

    @property
    def email_config(self) -> EmailConfig:
        """Get email settings."""
        section = self.get('email_config')
        if not isinstance(section, dict):
            raise RotatorError(ErrorKind.DATA_FORMAT, "email_config must be a mapping.")

        try:
            emails = section['notification_emails']
            if not isinstance(emails, list):
                raise RotatorError(ErrorKind.DATA_FORMAT, "email_config.notification_emails must be a list.")

            return EmailConfig(
                notification_emails=[str(address) for address in emails],
                smtp_username=str(section['smtp_username']),
                smtp_password=str(section['smtp_password']),
                smtp_host=str(section['smtp_host']),
                smtp_port=int(section['smtp_port']),
                smtp_starttls=bool(section.get('smtp_starttls', False)),
            )
        except KeyError as e:
            raise RotatorError(ErrorKind.DATA_FORMAT, f"Missing email_config key: {e.args[0]}", cause=e) from e
        except (TypeError, ValueError) as e:
            raise RotatorError(ErrorKind.DATA_FORMAT, f"Invalid email_config: {e}", cause=e) from e

    @property
    def retention_policies(self) -> Dict[str, RetentionPolicy]:
        """Get snapshot retention policies keyed by configured name."""
        section = self.get('snapshot_config') or {}
        if not isinstance(section, dict):
            raise RotatorError(ErrorKind.DATA_FORMAT, "snapshot_config must be a mapping.")

        policies = {}
        for key, entry in section.items():
            if not isinstance(entry, dict):
                raise RotatorError(ErrorKind.DATA_FORMAT, f"snapshot_config.{key} must be a mapping.")

            count = entry.get('min_snapshot_count')
            if isinstance(count, bool) or not isinstance(count, int) or count < 0:
                raise RotatorError(
                    ErrorKind.DATA_FORMAT,
                    f"snapshot_config.{key}.min_snapshot_count must be a non-negative integer, got {count!r}"
                )

            policies[str(key)] = RetentionPolicy(
                vm_name=str(entry.get('vm_name', key)),
                min_snapshot_count=count,
            )

        return policies

    def policy_for(self, vm_name: str) -> RetentionPolicy:
        """Get the retention policy for a virtual machine.

        Args:
            vm_name: Name given on the command line

        Returns:
            The configured policy

        Raises:
            RotatorError: user error when the VM is not configured
        """
        policy = self.retention_policies.get(vm_name)
        if policy is None:
            raise RotatorError.user_error(f"`snaprotator` not configured for vm `{vm_name}`")
        return policy
