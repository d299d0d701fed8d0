import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import toml

from print_relay.jobs.errors import ConfigError

DEFAULT_QUEUE_PREFIX = 'print_queue_'
DEFAULT_PORT = 3000
DEFAULT_BROKER_URL = 'amqp://localhost'


class ConfigManager:
    """Manages configuration loading and access."""

    def __init__(self, config_file: str = None):
        """
        Initialize ConfigManager.

        Args:
            config_file: Path to config file. If None, uses default locations.
        """
        if config_file is None:
            # Check for config in Docker volume mount first
            if Path('/app/config/config.toml').exists():
                config_file = '/app/config/config.toml'
            # Then check user home directory
            elif (Path.home() / '.print_relay' / 'config.toml').exists():
                config_file = str(Path.home() / '.print_relay' / 'config.toml')
            # Finally check current directory
            elif Path('config.toml').exists():
                config_file = 'config.toml'

        self.config_file = Path(config_file) if config_file else None
        self.config = {}
        if self.config_file:
            self.load_config()

    def exists(self):
        """Check if config file exists."""
        return bool(self.config_file and self.config_file.exists())

    def load_config(self):
        """Load configuration from file."""
        if not self.config_file or not self.config_file.exists():
            return

        if self.config_file.suffix == '.toml':
            self.config = toml.load(self.config_file)
        elif self.config_file.suffix == '.json':
            with open(self.config_file, 'r') as f:
                self.config = json.load(f)

    def get(self, key: str, default=None):
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g., 'rabbitmq.url')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self.config

        for k in key.split('.'):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value


@dataclass(frozen=True)
class Settings:
    tenant_id: str
    queue_prefix: str = DEFAULT_QUEUE_PREFIX
    port: int = DEFAULT_PORT
    broker_url: str = DEFAULT_BROKER_URL
    heartbeat: int = 60
    connection_timeout: float = 10.0
    reconnect_delay: float = 5.0
    print_timeout: float = 30.0
    side_store_dir: str = 'print_jobs'
    log_dir: str = 'logs'
    log_level: str = 'INFO'
    printers: dict = field(default_factory=dict)

    @property
    def queue_name(self) -> str:
        return f"{self.queue_prefix}{self.tenant_id}"


def load_settings(config: Optional[ConfigManager] = None,
                  environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the config file, with environment variables taking precedence.

    Environment:
        BUSINESS_ID / TENANT_ID, RABBITMQ_URL, PORT, LOG_LEVEL,
        <PRINTER_ID>_IP for each configured printer (e.g. PRINTER1_IP)

    Raises:
        ConfigError: no tenant id configured, or a numeric value does not parse
    """
    config = config if config is not None else ConfigManager()
    environ = os.environ if environ is None else environ

    tenant_id = str(
        environ.get('BUSINESS_ID')
        or environ.get('TENANT_ID')
        or config.get('service.tenant_id')
        or ''
    ).strip()
    if not tenant_id:
        raise ConfigError("BUSINESS_ID environment variable (or service.tenant_id) must be set")

    printers = {}
    for printer_id, data in (config.get('printers', {}) or {}).items():
        entry = dict(data or {})
        override = environ.get(f"{printer_id.upper()}_IP")
        if override:
            entry['address'] = override
        printers[printer_id] = entry

    try:
        return Settings(
            tenant_id=tenant_id,
            queue_prefix=config.get('service.queue_prefix', DEFAULT_QUEUE_PREFIX),
            port=int(environ.get('PORT') or config.get('service.port', DEFAULT_PORT)),
            broker_url=environ.get('RABBITMQ_URL') or config.get('rabbitmq.url', DEFAULT_BROKER_URL),
            heartbeat=int(config.get('rabbitmq.heartbeat', 60)),
            connection_timeout=float(config.get('rabbitmq.connection_timeout', 10)),
            reconnect_delay=float(config.get('rabbitmq.reconnect_delay', 5)),
            print_timeout=float(config.get('printing.timeout', 30)),
            side_store_dir=config.get('printing.side_store_dir', 'print_jobs'),
            log_dir=config.get('logging.dir', 'logs'),
            log_level=(environ.get('LOG_LEVEL') or config.get('logging.level', 'INFO')).upper(),
            printers=printers,
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}") from e
