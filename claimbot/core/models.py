"""Claimbot core domain models.

Defines the immutable value types shared by the provider adapter, the
acquisition loop and the notifiers:

* :class:`ResourcePool` — one availability domain capacity is requested in.
* :class:`LaunchParameters` / :class:`AcquisitionSpec` — what to launch and
  how hard to try.
* :class:`LaunchRequest` / :class:`ResourceHandle` — one launch call and the
  instance it created.
* :class:`AttemptOutcome` — the structured result of a single attempt.

Typical usage::

    from claimbot.core.models import AcquisitionSpec, LaunchParameters

    spec = AcquisitionSpec(
        sum=2,
        retry=-1,
        display_name="arm-box",
        launch=LaunchParameters(
            shape="VM.Standard.A1.Flex",
            ocpus=4,
            memory_in_gbs=24,
            image_id="ocid1.image.oc1..aaaa",
            subnet_id="ocid1.subnet.oc1..bbbb",
            compartment_id="ocid1.tenancy.oc1..cccc",
        ),
    )
    spec.rotation_mode  # RotationMode.EXHAUSTIVE
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

__all__ = [
    "RotationMode",
    "ErrorKind",
    "ResourceState",
    "ResourcePool",
    "LaunchParameters",
    "AcquisitionSpec",
    "LaunchRequest",
    "ResourceHandle",
    "AttemptOutcome",
]

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class RotationMode(StrEnum):
    """How the acquisition loop chooses the pool for the next attempt."""

    FIXED = "fixed"
    EVEN_SPLIT = "even_split"
    EXHAUSTIVE = "exhaustive"


class ErrorKind(StrEnum):
    """Classification of a failed attempt."""

    TERMINAL = "terminal"
    RETRYABLE = "retryable"


class ResourceState(StrEnum):
    """Instance lifecycle states as reported by the provider."""

    MOVING = "MOVING"
    PROVISIONING = "PROVISIONING"
    RUNNING = "RUNNING"
    STARTING = "STARTING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    CREATING_IMAGE = "CREATING_IMAGE"
    TERMINATING = "TERMINATING"
    TERMINATED = "TERMINATED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str | None) -> ResourceState:
        """Map a raw provider state string to a member, defaulting to UNKNOWN."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.upper())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_dead(self) -> bool:
        """``True`` once the instance is being destroyed or is gone."""
        return self in (ResourceState.TERMINATING, ResourceState.TERMINATED)


# ---------------------------------------------------------------------------
# Pools and launch configuration
# ---------------------------------------------------------------------------


class ResourcePool(BaseModel):
    """One independent capacity pool (an availability domain).

    Attributes:
        id: Provider identifier of the pool.
        name: Name used in launch requests (e.g. ``"Uocm:PHX-AD-1"``).
    """

    model_config = {"frozen": True}

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class LaunchParameters(BaseModel):
    """Provisioning parameters shared by every attempt of a run.

    Attributes:
        shape: Compute shape name, e.g. ``"VM.Standard.A1.Flex"``.
        ocpus: OCPU count for flex shapes; ``None`` for fixed shapes.
        memory_in_gbs: Memory for flex shapes; ``None`` for fixed shapes.
        burstable: Baseline OCPU utilisation for burstable instances:
            ``""`` (not burstable), ``"1/8"`` or ``"1/2"``.
        boot_volume_size_in_gbs: Boot volume size; ``None`` keeps the image
            default.
        image_id: Boot image OCID.
        subnet_id: Subnet OCID the primary VNIC is placed in.
        compartment_id: Compartment the instance is created in.
        ssh_authorized_key: Public key injected into the instance metadata.
        cloud_init: Optional cloud-init user data (plain text).
    """

    model_config = {"frozen": True}

    shape: str = Field(..., min_length=1)
    ocpus: float | None = Field(None, gt=0)
    memory_in_gbs: float | None = Field(None, gt=0)
    burstable: str = Field(default="")
    boot_volume_size_in_gbs: int | None = Field(None, gt=0)
    image_id: str = Field(..., min_length=1)
    subnet_id: str = Field(..., min_length=1)
    compartment_id: str = Field(..., min_length=1)
    ssh_authorized_key: str = Field(default="")
    cloud_init: str = Field(default="")

    @field_validator("burstable")
    @classmethod
    def _validate_burstable(cls, v: str) -> str:
        allowed = {"", "1/8", "1/2"}
        if v not in allowed:
            raise ValueError(f"burstable must be one of {allowed}, got {v!r}")
        return v

    @property
    def is_flex(self) -> bool:
        """``True`` for flexible shapes, which need an explicit shape config."""
        return "flex" in self.shape.lower()


class AcquisitionSpec(BaseModel):
    """Immutable configuration of one acquisition run.

    Attributes:
        sum: Number of instances to acquire (ignored in even-split mode,
            where the target is ``each × pool count``).
        fixed_pool: Name of the pinned pool, or ``None`` to rotate.
        each: Per-pool quota; ``0`` disables even-split mode.
        retry: Retry limit; ``-1`` means unlimited.
        min_delay: Lower bound of the inter-attempt delay, in seconds.
        max_delay: Upper bound of the inter-attempt delay, in seconds.
        display_name: Base instance name.
        launch: Provisioning parameters.
    """

    model_config = {"frozen": True}

    sum: int = Field(default=1, ge=1)
    fixed_pool: str | None = Field(default=None)
    each: int = Field(default=0, ge=0)
    retry: int = Field(default=-1, ge=-1)
    min_delay: int = Field(default=1)
    max_delay: int = Field(default=5)
    display_name: str = Field(..., min_length=1)
    launch: LaunchParameters

    @field_validator("fixed_pool", mode="before")
    @classmethod
    def _blank_pool_to_none(cls, v: object) -> object:
        """Coerce a blank pool name to None (no pinned pool)."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def rotation_mode(self) -> RotationMode:
        """Pool-selection mode: pinned pool beats ``each`` beats exhaustive."""
        if self.fixed_pool:
            return RotationMode.FIXED
        if self.each > 0:
            return RotationMode.EVEN_SPLIT
        return RotationMode.EXHAUSTIVE


# ---------------------------------------------------------------------------
# Launch call and its result
# ---------------------------------------------------------------------------


class LaunchRequest(BaseModel):
    """One provisioning request bound to a pool."""

    model_config = {"frozen": True}

    display_name: str = Field(..., min_length=1)
    pool: ResourcePool
    params: LaunchParameters


class ResourceHandle(BaseModel):
    """A created (or listed) instance.

    Attributes:
        id: Provider identifier of the instance.
        display_name: Instance display name.
        pool_name: Name of the pool the instance lives in.
        state: Last observed lifecycle state.
    """

    model_config = {"frozen": True}

    id: str = Field(..., min_length=1)
    display_name: str = Field(default="")
    pool_name: str = Field(default="")
    state: ResourceState = Field(default=ResourceState.UNKNOWN)


@dataclass(frozen=True)
class AttemptOutcome:
    """Structured result of one launch attempt.

    Attributes:
        succeeded: Whether the provider accepted the launch.
        pool: Pool the attempt targeted.
        display_name: Name the instance was (or would have been) given.
        sequence: 1-based position of the item in the run.
        resource: Created instance; set only on success.
        error_kind: Failure classification; set only on failure.
        error: The classified provider error; set only on failure.
    """

    succeeded: bool
    pool: ResourcePool
    display_name: str
    sequence: int
    resource: ResourceHandle | None = None
    error_kind: ErrorKind | None = None
    error: Exception | None = None
