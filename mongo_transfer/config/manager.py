"""
Configuration Management
Transfer settings from dotenv files, JSON/YAML files, environment variables and command-line overrides
"""
import os
import logging
from dataclasses import dataclass, field, asdict
from typing import Dict, Optional, Any
from enum import Enum
from pathlib import Path
import json
import yaml
from dotenv import load_dotenv

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONNECTION_STRING = "mongodb://localhost:27017"
SAME_CONNECTION_SENTINEL = "*"
DEFAULT_BATCH_SIZE = 50000

class Environment(Enum):
    """Environment types"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"

class MirrorMode(Enum):
    """What to do with destination documents that are absent from the source"""
    NONE = "none"
    TEST = "test"
    DELETE = "delete"

    @classmethod
    def parse(cls, value) -> "MirrorMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ConfigurationError(f"Unknown mirror mode '{value}' (expected one of: {choices})")

    @property
    def enabled(self) -> bool:
        return self is not MirrorMode.NONE

@dataclass
class DatabaseSettings:
    """Connection and namespace settings for one side of the transfer"""
    connection_string: Optional[str] = None
    database_name: Optional[str] = None
    collection_name: Optional[str] = None
    cursor_batch_size: int = 1000
    max_pool_size: int = 100
    min_pool_size: int = 0
    max_idle_time_ms: int = 300000
    socket_timeout_ms: int = 30000
    connect_timeout_ms: int = 20000
    server_selection_timeout_ms: int = 30000

@dataclass
class TransferConfig:
    """Main transfer configuration"""
    environment: Environment = Environment.DEVELOPMENT
    log_level: str = "INFO"

    source_database: DatabaseSettings = field(default_factory=lambda: DatabaseSettings(connection_string=DEFAULT_CONNECTION_STRING))
    target_database: DatabaseSettings = field(default_factory=DatabaseSettings)

    batch_size: int = DEFAULT_BATCH_SIZE
    mirror_mode: MirrorMode = MirrorMode.NONE
    identifier_field: str = "_id"
    audit_directory: str = "."
    show_progress: bool = True

class ConfigManager:
    """
    Configuration manager with support for:
    - Dotenv files (.env_local, .env, config.env)
    - Configuration files (JSON/YAML/dotenv)
    - TRANSFER_* environment variables
    - Explicit overrides from the command line
    - Destination resolution and validation
    """

    SOURCE_KEYS = {
        "connection_string": "SOURCE_CONNECTION_STRING",
        "database_name": "SOURCE_DB_NAME",
        "collection_name": "SOURCE_DB_COLLECTION",
        "cursor_batch_size": "SOURCE_CURSOR_BATCH_SIZE",
        "socket_timeout_ms": "SOURCE_SOCKET_TIMEOUT_MS",
        "connect_timeout_ms": "SOURCE_CONNECT_TIMEOUT_MS",
    }
    TARGET_KEYS = {
        "connection_string": "TARGET_CONNECTION_STRING",
        "database_name": "TARGET_DB_NAME",
        "collection_name": "TARGET_DB_COLLECTION",
        "cursor_batch_size": "TARGET_CURSOR_BATCH_SIZE",
        "socket_timeout_ms": "TARGET_SOCKET_TIMEOUT_MS",
        "connect_timeout_ms": "TARGET_CONNECT_TIMEOUT_MS",
    }
    INT_KEYS = {"cursor_batch_size", "socket_timeout_ms", "connect_timeout_ms"}

    def __init__(self, config_prefix: str = "TRANSFER"):
        self.config_prefix = config_prefix
        self.config: Optional[TransferConfig] = None
        self._load_environment_variables()

    def _load_environment_variables(self):
        """Load environment variables from .env files"""
        env_files = ['.env_local', '.env', 'config.env']
        for env_file in env_files:
            if Path(env_file).exists():
                load_dotenv(env_file)
                logger.info(f"Loaded environment variables from {env_file}")
                break

    def load_config(self, config_file: Optional[str] = None,
                    overrides: Optional[Dict[str, Any]] = None) -> TransferConfig:
        """Load configuration from file, environment variables and overrides"""
        config_data: Dict[str, Any] = {}

        if config_file:
            file_path = Path(config_file)
            if not file_path.exists():
                raise ConfigurationError(f"Configuration file not found: {config_file}")
            if _is_dotenv(file_path):
                load_dotenv(config_file, override=True)
            else:
                _merge(config_data, self._load_config_file(config_file))

        _merge(config_data, self._load_from_environment())
        _merge(config_data, overrides or {})

        self.config = self._create_config_object(config_data)
        self._resolve_target(self.config)
        self._validate_config(self.config)

        logger.debug(f"Configuration loaded for {self.config.environment.value} environment")
        return self.config

    def _load_config_file(self, config_file: str) -> Dict[str, Any]:
        """Load configuration from JSON or YAML file"""
        file_path = Path(config_file)
        suffix = file_path.suffix.lower()
        if suffix not in ('.json', '.yml', '.yaml'):
            raise ConfigurationError(f"Unsupported configuration file format: {file_path.suffix}")

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                if suffix == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not read configuration file {config_file}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {config_file} must hold a mapping, "
                                     f"not {type(data).__name__}")

        logger.info(f"Loaded configuration file {config_file}")
        return data

    def _load_from_environment(self) -> Dict[str, Any]:
        """Load configuration from environment variables; unset variables are left out"""
        config: Dict[str, Any] = {}

        for section, keys in (("source_database", self.SOURCE_KEYS), ("target_database", self.TARGET_KEYS)):
            values = {}
            for name, suffix in keys.items():
                raw = os.getenv(f"{self.config_prefix}_{suffix}")
                if raw is None or raw == "":
                    continue
                values[name] = self._to_int(raw, f"{self.config_prefix}_{suffix}") if name in self.INT_KEYS else raw
            if values:
                config[section] = values

        scalars = {
            "environment": os.getenv(f"{self.config_prefix}_ENVIRONMENT"),
            "log_level": os.getenv(f"{self.config_prefix}_LOG_LEVEL"),
            "batch_size": os.getenv(f"{self.config_prefix}_BATCH_SIZE"),
            "mirror_mode": os.getenv(f"{self.config_prefix}_MIRROR_MODE"),
            "identifier_field": os.getenv(f"{self.config_prefix}_IDENTIFIER_FIELD"),
            "audit_directory": os.getenv(f"{self.config_prefix}_AUDIT_DIRECTORY"),
        }
        config.update({key: value for key, value in scalars.items() if value})

        return config

    @staticmethod
    def _to_int(value, name: str) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"{name} must be an integer, got '{value}'")

    def _create_config_object(self, config_data: Dict[str, Any]) -> TransferConfig:
        """Create TransferConfig object from dictionary"""
        source = {"connection_string": DEFAULT_CONNECTION_STRING}
        source.update({k: v for k, v in config_data.get("source_database", {}).items() if v is not None})
        target = {k: v for k, v in config_data.get("target_database", {}).items() if v is not None}

        try:
            source_settings = DatabaseSettings(**source)
            target_settings = DatabaseSettings(**target)
        except TypeError as e:
            raise ConfigurationError(f"Invalid database settings: {e}")

        try:
            environment = Environment(config_data.get("environment", Environment.DEVELOPMENT.value))
        except ValueError:
            raise ConfigurationError(f"Unknown environment '{config_data.get('environment')}'")

        return TransferConfig(
            environment=environment,
            log_level=str(config_data.get("log_level", "INFO")).upper(),
            source_database=source_settings,
            target_database=target_settings,
            batch_size=self._to_int(config_data.get("batch_size", DEFAULT_BATCH_SIZE), "batch_size"),
            mirror_mode=MirrorMode.parse(config_data.get("mirror_mode", MirrorMode.NONE)),
            identifier_field=config_data.get("identifier_field", "_id"),
            audit_directory=str(config_data.get("audit_directory", ".")),
            show_progress=bool(config_data.get("show_progress", True))
        )

    def _resolve_target(self, config: TransferConfig):
        """Apply destination defaults: '*' reuses the source connection, names fall back to the source ones"""
        source = config.source_database
        target = config.target_database

        if target.connection_string == SAME_CONNECTION_SENTINEL:
            if not target.collection_name:
                raise ConfigurationError("Same connection strings and output collection unspecified")
            target.connection_string = source.connection_string

        if not target.database_name:
            target.database_name = source.database_name
        if not target.collection_name:
            target.collection_name = source.collection_name

    def _validate_config(self, config: TransferConfig):
        """Validate configuration"""
        errors = []
        source = config.source_database
        target = config.target_database

        if not source.database_name:
            errors.append("Source database name is required")
        if not source.collection_name:
            errors.append("Source collection name is required")
        if not target.connection_string:
            errors.append("Target connection string is required")
        if config.batch_size <= 0:
            errors.append("Batch size must be > 0")
        if not config.identifier_field:
            errors.append("Identifier field must not be empty")

        if not errors and same_collection(source, target):
            errors.append("Same connection strings and same collection names")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

    def save_config(self, config: TransferConfig, file_path: str):
        """Save configuration to file"""
        config_dict = asdict(config)
        config_dict["environment"] = config.environment.value
        config_dict["mirror_mode"] = config.mirror_mode.value

        file_path_obj = Path(file_path)
        with open(file_path_obj, 'w', encoding='utf-8') as f:
            if file_path_obj.suffix.lower() == '.json':
                json.dump(config_dict, f, indent=2)
            elif file_path_obj.suffix.lower() in ['.yml', '.yaml']:
                yaml.safe_dump(config_dict, f, default_flow_style=False)
            else:
                raise ConfigurationError(f"Unsupported file format: {file_path_obj.suffix}")

def same_collection(source: DatabaseSettings, target: DatabaseSettings) -> bool:
    """True when both settings point at the same physical collection"""
    return (
        _casefold(source.connection_string) == _casefold(target.connection_string)
        and _casefold(source.database_name) == _casefold(target.database_name)
        and _casefold(source.collection_name) == _casefold(target.collection_name)
    )

def _casefold(value: Optional[str]) -> str:
    return (value or "").strip().casefold()

def _is_dotenv(file_path: Path) -> bool:
    return (file_path.suffix.lower() == '.env' or
            file_path.name.startswith('.env') or
            file_path.name.endswith('.env'))

def _merge(base: Dict[str, Any], update: Dict[str, Any]):
    """Merge update into base, one level deep for database sections"""
    for key, value in update.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key].update(value)
        else:
            base[key] = value
