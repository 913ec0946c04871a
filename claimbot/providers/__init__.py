"""Compute provider contract and the OCI implementation."""

from claimbot.providers.base import ComputeProvider
from claimbot.providers.oci import OciComputeProvider

__all__ = ["ComputeProvider", "OciComputeProvider"]
