"""Acquisition scheduler: rotation, attempts, back-off and the run loop."""

from claimbot.acquisition.backoff import BackoffScheduler, compute_delay
from claimbot.acquisition.classifier import classify, to_classified
from claimbot.acquisition.inventory import Inventory, list_resources_across_pools
from claimbot.acquisition.orchestrator import AcquisitionOrchestrator, RunSummary
from claimbot.acquisition.rotation import Exhausted, build_rotation_policy

__all__ = [
    "AcquisitionOrchestrator",
    "BackoffScheduler",
    "Exhausted",
    "Inventory",
    "RunSummary",
    "build_rotation_policy",
    "classify",
    "compute_delay",
    "list_resources_across_pools",
    "to_classified",
]
