"""Configuration variables with defaults that are overridable by a file."""

from __future__ import annotations

import logging
import tempfile
from configparser import ConfigParser, SectionProxy
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

@dataclass
class ConnectionConfig:
    """Settings for the paramiko-backed session."""

    port: int = 22
    timeout: float = 30.0
    command_timeout: float = 120.0
    allow_agent: bool = True
    look_for_keys: bool = True

    @staticmethod
    def load(section: SectionProxy) -> ConnectionConfig:
        """Load overridden variables from a section within a config file."""
        config = ConnectionConfig()

        config.port = section.getint("port", fallback=config.port)
        config.timeout = section.getfloat("timeout", fallback=config.timeout)
        config.command_timeout = section.getfloat(
            "command_timeout", fallback=config.command_timeout
        )
        config.allow_agent = section.getboolean("allow_agent", fallback=config.allow_agent)
        config.look_for_keys = section.getboolean(
            "look_for_keys", fallback=config.look_for_keys
        )

        return config

@dataclass
class NavigationConfig:
    history_limit: int = 50

    @staticmethod
    def load(section: SectionProxy) -> NavigationConfig:
        """Load overridden variables from a section within a config file."""
        config = NavigationConfig()
        config.history_limit = max(
            1, section.getint("history_limit", fallback=config.history_limit)
        )
        return config

@dataclass
class TransferConfig:
    """Settings for uploads, downloads and archive batching."""

    max_workers: int = 4
    archive_prefix: str = "remotefm_upload_"
    temp_dir: str = field(default_factory=tempfile.gettempdir)
    extract_command: str = "unzip -o -q"

    @staticmethod
    def load(section: SectionProxy) -> TransferConfig:
        """Load overridden variables from a section within a config file."""
        config = TransferConfig()

        config.max_workers = section.getint("max_workers", fallback=config.max_workers)
        config.archive_prefix = section.get("archive_prefix", fallback=config.archive_prefix)
        config.temp_dir = section.get("temp_dir", fallback=config.temp_dir)
        config.extract_command = section.get(
            "extract_command", fallback=config.extract_command
        )

        return config

@dataclass
class Config:
    """Configuration variables."""

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    navigation: NavigationConfig = field(default_factory=NavigationConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)

    @staticmethod
    def load(filename: str) -> Config:
        """Load overridden configuration variables from a config file."""
        parser = ConfigParser()

        config = Config()

        try:
            with open(filename, "r") as f:
                parser.read_string(f.read(), filename)

            if "connection" in parser:
                config.connection = ConnectionConfig.load(parser["connection"])
            if "navigation" in parser:
                config.navigation = NavigationConfig.load(parser["navigation"])
            if "transfer" in parser:
                config.transfer = TransferConfig.load(parser["transfer"])
        except FileNotFoundError:
            logger.info(f"no config file at {filename}")
        except Exception as e:
            # Defaults are always usable, so a broken file is not fatal.
            logger.error(f"failed to read config file {filename}: {e}")
        else:
            logger.info(f"loaded config: {config}")

        return config
