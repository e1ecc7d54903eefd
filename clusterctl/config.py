"""
Configuration for clusterctl, read from the environment.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

from .errors import ConfigurationError
from .planner import ProvenanceScope

DEFAULT_REGION = "us-west-2"
DEFAULT_INSTANCE_TYPE = "t2.micro"

# Instances of a force-deleted scaling group take minutes to terminate.
DEFAULT_SETTLE_INTERVAL = 5.0
DEFAULT_SETTLE_TIMEOUT = 600.0


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry applied to every provider write."""
    max_attempts: int = 10
    delay: float = 1.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigurationError(f"Retry attempts must be at least 1, got {self.max_attempts}")
        if self.delay < 0:
            raise ConfigurationError(f"Retry delay cannot be negative, got {self.delay}")


@dataclass(frozen=True)
class WaitPolicy:
    """Fixed-interval polling bound used while waiting for a resource to disappear."""
    interval: float = 1.0
    timeout: float = 60.0

    def __post_init__(self):
        if self.interval <= 0:
            raise ConfigurationError(f"Wait interval must be positive, got {self.interval}")
        if self.timeout < 0:
            raise ConfigurationError(f"Wait timeout cannot be negative, got {self.timeout}")


@dataclass
class ClusterOptions:
    """Operator choices for the container instances of a new cluster."""
    instance_type: str = DEFAULT_INSTANCE_TYPE
    initial_capacity: int = 1
    key_pair: Optional[str] = None
    vpc_id: Optional[str] = None
    instance_profile: Optional[str] = None  # existing profile to use instead of creating one
    image_id: Optional[str] = None
    tags: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.initial_capacity < 0:
            raise ConfigurationError(f"Initial capacity cannot be negative, got {self.initial_capacity}")
        if not (self.instance_type or "").strip():
            raise ConfigurationError("Instance type cannot be empty")


@dataclass
class Settings:
    """Process-wide settings."""
    region: str = DEFAULT_REGION
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    wait: WaitPolicy = field(default_factory=WaitPolicy)  # pre-wait on terminating resources
    # polls after a settling delete such as the scaling group
    settle: WaitPolicy = field(
        default_factory=lambda: WaitPolicy(interval=DEFAULT_SETTLE_INTERVAL, timeout=DEFAULT_SETTLE_TIMEOUT)
    )
    provenance_scope: ProvenanceScope = ProvenanceScope.ALL
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings

        Raises:
            ConfigurationError: If a variable holds a malformed value
        """
        env = os.environ if environ is None else environ

        region = env.get("CLUSTERCTL_REGION") or env.get("AWS_REGION") or DEFAULT_REGION

        retry = RetryPolicy(
            max_attempts=_int(env, "CLUSTERCTL_RETRY_ATTEMPTS", 10),
            delay=_float(env, "CLUSTERCTL_RETRY_DELAY", 1.0),
        )
        wait = WaitPolicy(
            interval=_float(env, "CLUSTERCTL_WAIT_INTERVAL", 1.0),
            timeout=_float(env, "CLUSTERCTL_WAIT_TIMEOUT", 60.0),
        )
        settle = WaitPolicy(
            interval=_float(env, "CLUSTERCTL_SETTLE_INTERVAL", DEFAULT_SETTLE_INTERVAL),
            timeout=_float(env, "CLUSTERCTL_SETTLE_TIMEOUT", DEFAULT_SETTLE_TIMEOUT),
        )

        scope_value = env.get("CLUSTERCTL_PROVENANCE_SCOPE", ProvenanceScope.ALL.value).strip().lower()
        try:
            scope = ProvenanceScope(scope_value)
        except ValueError:
            choices = ", ".join(s.value for s in ProvenanceScope)
            raise ConfigurationError(
                f"Invalid CLUSTERCTL_PROVENANCE_SCOPE [{scope_value}], expected one of: {choices}"
            )

        log_level = env.get("CLUSTERCTL_LOG_LEVEL", "WARNING").strip().upper()

        return cls(
            region=region,
            retry=retry,
            wait=wait,
            settle=settle,
            provenance_scope=scope,
            log_level=log_level,
        )


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid integer for {key}: {raw}")


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid number for {key}: {raw}")
