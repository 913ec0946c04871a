"""Core domain models, session state, settings, logging configuration and errors."""

from claimbot.core.exceptions import (
    AcquisitionAborted,
    ClaimbotError,
    ConfigError,
    NotificationError,
    PoolsExhausted,
    ProviderError,
    ResourceDiedAfterAcquisition,
    RetryLimitExceeded,
    TelegramError,
    TelegramRateLimitError,
    TerminalProviderError,
    TransientProviderError,
)
from claimbot.core.logging_config import JsonFormatter, configure_logging
from claimbot.core.models import (
    AcquisitionSpec,
    AttemptOutcome,
    ErrorKind,
    LaunchParameters,
    LaunchRequest,
    ResourceHandle,
    ResourcePool,
    ResourceState,
    RotationMode,
)
from claimbot.core.session import AcquisitionSession, SessionState
from claimbot.core.settings import Settings

__all__ = [
    # Logging
    "configure_logging",
    "JsonFormatter",
    # Domain models
    "AcquisitionSpec",
    "AttemptOutcome",
    "ErrorKind",
    "LaunchParameters",
    "LaunchRequest",
    "ResourceHandle",
    "ResourcePool",
    "ResourceState",
    "RotationMode",
    # Session
    "AcquisitionSession",
    "SessionState",
    # Settings
    "Settings",
    # Exceptions — base
    "ClaimbotError",
    # Exceptions — config
    "ConfigError",
    # Exceptions — provider
    "ProviderError",
    "TransientProviderError",
    "TerminalProviderError",
    # Exceptions — acquisition
    "ResourceDiedAfterAcquisition",
    "AcquisitionAborted",
    "PoolsExhausted",
    "RetryLimitExceeded",
    # Exceptions — notification
    "NotificationError",
    "TelegramError",
    "TelegramRateLimitError",
]
