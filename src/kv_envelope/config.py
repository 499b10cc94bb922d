"""Configuration loading and management."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

try:
    import tomli
except ImportError:  # pragma: no cover
    import tomllib as tomli  # Python 3.11+

from kv_envelope.errors import ConfigError
from kv_envelope.keys import KeyPair


class LogFormat(Enum):
    """Log renderer."""
    CONSOLE = "console"
    JSON = "json"


@dataclass
class Config:
    """Signer and runtime configuration."""

    # Signer settings: hex-encoded key pair, inline or in a file
    keypair_hex: str = ""
    keypair_file: str = ""

    # Logging settings
    log_level: str = "INFO"
    log_format: LogFormat = LogFormat.CONSOLE

    # Limits
    max_body_size: int = 102400  # 100KB

    @property
    def has_signer(self) -> bool:
        """Whether a signer key pair is configured."""
        return bool(self.keypair_hex or self.keypair_file)

    def load_keypair(self) -> Optional[KeyPair]:
        """Load the configured signer key pair.

        Returns:
            The key pair, or None if no signer is configured

        Raises:
            DecodeError: If the configured hex is malformed
            ConfigError: If the key pair file cannot be read
        """
        if self.keypair_hex:
            return KeyPair.from_hex(self.keypair_hex.strip())
        if self.keypair_file:
            path = Path(self.keypair_file).expanduser()
            try:
                text = path.read_text()
            except OSError as e:
                raise ConfigError(f"Cannot read key pair file {path}: {e}") from e
            return KeyPair.from_hex(text.strip())
        return None


DEFAULT_CONFIG = Config()

CONFIG_PATHS = [
    Path("kv-envelope.toml"),
    Path.home() / ".config" / "kv-envelope" / "config.toml",
]


def load_config(path: Path) -> Config:
    """Load configuration from TOML file.

    Args:
        path: Path to config file

    Returns:
        Loaded configuration, merged with defaults
    """
    if not path.exists():
        return Config()

    with open(path, "rb") as f:
        data = tomli.load(f)

    signer = data.get("signer", {})
    logging_section = data.get("logging", {})
    limits = data.get("limits", {})

    return Config(
        keypair_hex=signer.get("keypair", ""),
        keypair_file=signer.get("keypair_file", ""),
        log_level=logging_section.get("level", "INFO"),
        log_format=LogFormat(logging_section.get("format", "console")),
        max_body_size=limits.get("max_body_size", 102400),
    )


def find_config() -> Config:
    """Load the first config file found in the standard locations."""
    for path in CONFIG_PATHS:
        if path.exists():
            return load_config(path)
    return Config()
