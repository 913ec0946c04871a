"""Claimbot application settings loaded from environment and ``.env`` files.

Uses :mod:`pydantic_settings` to parse environment variables (and optionally
an ``.env`` file) into a validated settings object.

Every environment variable documented in ``.env.example`` maps 1-to-1 to a
field in :class:`Settings`.  The field name is the **lowercase** version of
the env-var name (e.g. ``INSTANCE_SHAPE`` → ``instance_shape``).

Typical usage::

    from claimbot.core.settings import Settings

    settings = Settings()                         # loads from env + .env
    spec = settings.to_acquisition_spec()         # build AcquisitionSpec
    print(settings.telegram_configured)           # True / False
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from claimbot.core.exceptions import ConfigError
from claimbot.core.models import AcquisitionSpec, LaunchParameters

__all__ = ["Settings", "default_display_name"]

logger = logging.getLogger(__name__)


def default_display_name(now: datetime | None = None) -> str:
    """Return the fallback instance name, e.g. ``instance-20260301-0915``."""
    return (now or datetime.now()).strftime("instance-%Y%m%d-%H%M")


# ---------------------------------------------------------------------------
# Settings model
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Central application configuration.

    Values are loaded in priority order:

    1. Actual environment variables (highest priority).
    2. ``.env`` file in the working directory.
    3. Field defaults (lowest priority).

    Telegram fields may be left empty; :attr:`telegram_configured` is then
    ``False`` and progress is only logged.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Telegram
    # ------------------------------------------------------------------
    telegram_bot_token: str = Field(
        default="",
        description="Bot token from @BotFather (optional).",
    )
    telegram_chat_id: str = Field(
        default="",
        description="Numeric chat ID progress messages are sent to.",
    )
    telegram_proxy: str = Field(
        default="",
        description="Optional proxy URL for Telegram API traffic.",
    )
    notify_progress: bool = Field(
        default=True,
        description="Send per-instance progress messages to Telegram.",
    )

    # ------------------------------------------------------------------
    # OCI SDK
    # ------------------------------------------------------------------
    oci_config_file: str = Field(
        default="~/.oci/config",
        description="Path to the OCI SDK config file.",
    )
    oci_profile: str = Field(
        default="DEFAULT",
        description="Profile name inside the OCI SDK config file.",
    )
    oci_compartment_id: str = Field(
        default="",
        description="Compartment OCID; defaults to the tenancy of the profile.",
    )
    oci_proxy: str = Field(
        default="",
        description="Optional proxy URL for OCI API traffic (http:// or https://).",
    )

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------
    instance_availability_domain: str = Field(
        default="",
        description="Pin every attempt to this availability domain (blank = rotate).",
    )
    instance_sum: int = Field(
        default=1,
        ge=1,
        description="Number of instances to acquire.",
    )
    instance_each: int = Field(
        default=0,
        ge=0,
        description="Instances per availability domain (0 = disabled).",
    )
    instance_retry: int = Field(
        default=-1,
        ge=-1,
        description="Retry limit (-1 = unlimited).",
    )
    instance_min_delay: int = Field(
        default=1,
        description="Min seconds to sleep after every attempt.",
    )
    instance_max_delay: int = Field(
        default=5,
        description="Max seconds to sleep after every attempt.",
    )
    instance_display_name: str = Field(
        default="",
        description="Base instance name (blank = instance-YYYYMMDD-HHMM).",
    )

    # ------------------------------------------------------------------
    # Launch parameters
    # ------------------------------------------------------------------
    instance_shape: str = Field(default="VM.Standard.A1.Flex", description="Compute shape.")
    instance_ocpus: float = Field(default=0.0, ge=0.0, description="OCPUs (flex shapes).")
    instance_memory_in_gbs: float = Field(
        default=0.0,
        ge=0.0,
        description="Memory in GB (flex shapes).",
    )
    instance_burstable: str = Field(
        default="",
        description="Baseline utilisation for burstable shapes: '', '1/8' or '1/2'.",
    )
    instance_boot_volume_size_in_gbs: int = Field(
        default=0,
        ge=0,
        description="Boot volume size in GB (0 = image default).",
    )
    instance_image_id: str = Field(
        default="",
        description="Boot image OCID (blank = look up by operating system).",
    )
    instance_operating_system: str = Field(
        default="",
        description="Image operating system, e.g. 'Canonical Ubuntu'.",
    )
    instance_operating_system_version: str = Field(
        default="",
        description="Image operating system version, e.g. '22.04'.",
    )
    instance_subnet_id: str = Field(default="", description="Subnet OCID.")
    instance_ssh_authorized_key: str = Field(default="", description="SSH public key.")
    instance_cloud_init: str = Field(default="", description="cloud-init user data.")

    # ------------------------------------------------------------------
    # Runtime
    # ------------------------------------------------------------------
    log_level: str = Field(default="INFO", description="Logging level.")
    log_format: str = Field(default="text", description="Log format: 'text' or 'json'.")

    # ------------------------------------------------------------------
    # Field validators
    # ------------------------------------------------------------------

    @field_validator("instance_burstable")
    @classmethod
    def _validate_burstable(cls, v: str) -> str:
        allowed = {"", "1/8", "1/2"}
        if v not in allowed:
            raise ValueError(f"instance_burstable must be one of {allowed}, got {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got {v!r}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def _validate_log_format(cls, v: str) -> str:
        allowed = {"text", "json"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got {v!r}")
        return v_lower

    # ------------------------------------------------------------------
    # Derived helpers
    # ------------------------------------------------------------------

    def to_acquisition_spec(
        self,
        compartment_id: str | None = None,
        image_id: str | None = None,
    ) -> AcquisitionSpec:
        """Build an :class:`AcquisitionSpec` from the ``instance_*`` fields.

        Convention: ``0`` for ocpus, memory and boot volume size means
        *"not set"* and becomes ``None`` in the launch parameters.

        Args:
            compartment_id: Compartment to launch into when
                ``oci_compartment_id`` is blank (usually the tenancy OCID
                read from the OCI config file).
            image_id: Image to boot when ``instance_image_id`` is blank
                (usually looked up from the configured operating system).

        Raises:
            ConfigError: If a required launch field is missing or the
                combination of values is invalid.
        """
        missing = [
            name
            for name, value in (
                (
                    "INSTANCE_IMAGE_ID (or INSTANCE_OPERATING_SYSTEM + _VERSION)",
                    self.instance_image_id or image_id,
                ),
                ("INSTANCE_SUBNET_ID", self.instance_subnet_id),
                ("OCI_COMPARTMENT_ID", self.oci_compartment_id or compartment_id),
            )
            if not value
        ]
        if missing:
            raise ConfigError(f"Missing required setting(s): {', '.join(missing)}")

        try:
            return AcquisitionSpec(
                sum=self.instance_sum,
                fixed_pool=self.instance_availability_domain or None,
                each=self.instance_each,
                retry=self.instance_retry,
                min_delay=self.instance_min_delay,
                max_delay=self.instance_max_delay,
                display_name=self.instance_display_name or default_display_name(),
                launch=LaunchParameters(
                    shape=self.instance_shape,
                    ocpus=self.instance_ocpus or None,
                    memory_in_gbs=self.instance_memory_in_gbs or None,
                    burstable=self.instance_burstable,
                    boot_volume_size_in_gbs=self.instance_boot_volume_size_in_gbs or None,
                    image_id=self.instance_image_id or image_id,
                    subnet_id=self.instance_subnet_id,
                    compartment_id=self.oci_compartment_id or compartment_id,
                    ssh_authorized_key=self.instance_ssh_authorized_key,
                    cloud_init=self.instance_cloud_init,
                ),
            )
        except ValidationError as exc:
            raise ConfigError(f"Invalid acquisition settings: {exc}") from exc

    @property
    def oci_config_path(self) -> Path:
        """Return the OCI config path with ``~`` expanded."""
        return Path(self.oci_config_file).expanduser()

    @property
    def telegram_configured(self) -> bool:
        """``True`` if both Telegram credentials are set."""
        return bool(self.telegram_bot_token and self.telegram_chat_id)
