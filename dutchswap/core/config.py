"""
Registry configuration parameters for dutchswap.

Defines the numeric domain (word width, display decimals) and logging
options. Values come from dataclass defaults, an optional dotenv file and
DUTCHSWAP_* environment variables, in increasing order of precedence.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values

ENV_PREFIX = "DUTCHSWAP_"


@dataclass
class RegistryConfig:
    """Registry-wide configuration parameters"""

    # Numeric domain
    word_bits: int = 256  # Unsigned word width for prices and amounts
    decimals: int = 18  # Display decimals for prices (wei-style)

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False
    log_dir: Path = field(default_factory=lambda: Path("logs"))

    def __post_init__(self):
        if self.word_bits <= 0:
            raise ValueError(f"word_bits must be positive, got {self.word_bits}")
        if self.decimals < 0:
            raise ValueError(f"decimals must be non-negative, got {self.decimals}")
        self.log_level = self.log_level.upper()

    @property
    def max_uint(self) -> int:
        """Largest value representable in the unsigned word."""
        return 2**self.word_bits - 1


def _coerce(name: str, raw: str):
    """Convert a raw string setting to the type of the named field."""
    if name in ("word_bits", "decimals"):
        return int(raw)
    if name == "log_to_file":
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if name == "log_dir":
        return Path(raw)
    return raw


def load_config(config_path: Optional[str] = None) -> RegistryConfig:
    """
    Load configuration from a dotenv file and the environment.

    Keys are field names upper-cased with the DUTCHSWAP_ prefix, e.g.
    DUTCHSWAP_WORD_BITS=64.

    Args:
        config_path: Optional path to a dotenv file

    Returns:
        RegistryConfig instance
    """
    raw: Dict[str, Optional[str]] = {}
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        raw.update(dotenv_values(path))

    raw.update({k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)})

    values = {}
    for f in fields(RegistryConfig):
        setting = raw.get(ENV_PREFIX + f.name.upper())
        if setting is not None and setting != "":
            values[f.name] = _coerce(f.name, setting)

    return RegistryConfig(**values)
