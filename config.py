from dataclasses import dataclass, field
from typing import Optional, Tuple

from botocore.config import Config as BotoConfig

from errors import ConfigError

DEFAULT_REGION = "us-east-1"


@dataclass(frozen=True)
class DiscoveryConfig:
    """Settings for one discovery pass, resolved once and passed to every component."""

    profile_name: Optional[str] = None
    default_region: str = DEFAULT_REGION
    regions: Tuple[str, ...] = field(default_factory=tuple)
    include_disabled_regions: bool = True
    max_workers: int = 8
    max_retries: int = 2
    retry_backoff: float = 0.5
    retry_max_wait: float = 5.0
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    timeout: Optional[float] = None

    def __post_init__(self):
        if self.max_workers < 1:
            raise ConfigError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.max_retries < 0:
            raise ConfigError(f"max_retries cannot be negative, got {self.max_retries}")
        if self.retry_backoff < 0 or self.retry_max_wait < 0:
            raise ConfigError("retry backoff values cannot be negative")
        if self.connect_timeout <= 0 or self.read_timeout <= 0:
            raise ConfigError("connect and read timeouts must be positive")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if not self.default_region:
            raise ConfigError("default_region cannot be empty")
        # Accept any iterable of regions but keep the dataclass hashable.
        object.__setattr__(self, "regions", tuple(self.regions or ()))

    def boto_config(self):
        """Client config with per-call timeouts; retries are handled by the scanner."""
        return BotoConfig(
            connect_timeout=self.connect_timeout,
            read_timeout=self.read_timeout,
            retries={"max_attempts": 1, "mode": "standard"},
        )
