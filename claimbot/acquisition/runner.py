"""Entry-points that assemble the runtime components from settings.

:func:`run_acquisition` and :func:`run_inventory` are the two coroutines
:mod:`claimbot.__main__` hands off to.  Each call:

1. Loads :class:`~claimbot.core.settings.Settings` (or uses the supplied
   instance).
2. Builds an :class:`~claimbot.providers.oci.OciComputeProvider` from the
   OCI SDK config file (or uses the supplied provider).
3. Resolves the boot image from the operating system name and version
   when no image OCID is configured, and fills unset flex-shape sizing
   with the defaults the provider reports for the shape.
4. Opens a :class:`~claimbot.notifiers.telegram.TelegramClient` when
   Telegram is configured and progress messages are enabled; otherwise
   progress is only logged through a
   :class:`~claimbot.notifiers.notifier.NullNotifier`.  A Telegram client that
   cannot be opened (bad proxy URL, missing SOCKS support) also falls back
   to logging.
5. Tears every resource down through one :class:`contextlib.AsyncExitStack`,
   including on exceptions.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack

import httpx

from claimbot.acquisition.inventory import Inventory, list_resources_across_pools
from claimbot.acquisition.orchestrator import AcquisitionOrchestrator, RunSummary
from claimbot.core import events
from claimbot.core.exceptions import ConfigError
from claimbot.core.models import AcquisitionSpec
from claimbot.core.settings import Settings
from claimbot.notifiers.notifier import NullNotifier, ProgressNotifier, TelegramNotifier
from claimbot.notifiers.telegram import TelegramClient
from claimbot.providers.base import ComputeProvider
from claimbot.providers.oci import OciComputeProvider

__all__ = ["run_acquisition", "run_inventory"]

logger = logging.getLogger(__name__)


def _build_provider(settings: Settings) -> OciComputeProvider:
    return OciComputeProvider.from_config_file(
        str(settings.oci_config_path),
        settings.oci_profile,
        compartment_id=settings.oci_compartment_id or None,
        proxy=settings.oci_proxy or None,
    )


async def _open_notifier(settings: Settings, stack: AsyncExitStack) -> ProgressNotifier:
    if not settings.telegram_configured:
        logger.info("Telegram not configured; progress is only logged.")
        return NullNotifier()
    if not settings.notify_progress:
        logger.info("NOTIFY_PROGRESS is off; progress is only logged.")
        return NullNotifier()
    try:
        client = await stack.enter_async_context(
            TelegramClient(
                token=settings.telegram_bot_token,
                chat_id=settings.telegram_chat_id,
                proxy=settings.telegram_proxy or None,
            )
        )
    except (ImportError, ValueError, httpx.HTTPError) as exc:
        logger.error(
            "Telegram client could not be opened (%s); progress is only logged.",
            exc,
            extra={"event": events.NOTIFY_ERROR},
        )
        return NullNotifier()
    return TelegramNotifier(client)


async def _resolve_image(settings: Settings, provider: ComputeProvider) -> str | None:
    """Look the boot image up by operating system when no OCID is configured."""
    if settings.instance_image_id:
        return None
    os_name = settings.instance_operating_system
    os_version = settings.instance_operating_system_version
    if not (os_name and os_version):
        return None
    image_id = await provider.find_image(os_name, os_version, settings.instance_shape)
    logger.info("Using newest %s %s image: %s", os_name, os_version, image_id)
    return image_id


async def _with_shape_sizing(spec: AcquisitionSpec, provider: ComputeProvider) -> AcquisitionSpec:
    """Fill unset flex OCPU / memory values with the shape's defaults."""
    launch = spec.launch
    if not launch.is_flex or (launch.ocpus and launch.memory_in_gbs):
        return spec
    ocpus, memory = await provider.get_shape_sizing(launch.shape, launch.image_id)
    ocpus = launch.ocpus or ocpus
    memory = launch.memory_in_gbs or memory
    if not (ocpus and memory):
        raise ConfigError(
            f"Shape {launch.shape} has no default sizing; "
            "set INSTANCE_OCPUS and INSTANCE_MEMORY_IN_GBS."
        )
    logger.info("Flex shape %s sized to %g OCPU / %g GB.", launch.shape, ocpus, memory)
    sized = launch.model_copy(update={"ocpus": ocpus, "memory_in_gbs": memory})
    return spec.model_copy(update={"launch": sized})


async def run_acquisition(
    settings: Settings | None = None,
    *,
    provider: ComputeProvider | None = None,
) -> RunSummary:
    """Run one acquisition session configured by *settings*.

    Raises:
        ConfigError: If the settings or the OCI config are incomplete, or no
            image matches the configured operating system.
        ProviderError: If the availability domains, images or shapes cannot
            be listed.
    """
    if settings is None:
        settings = Settings()
    if provider is None:
        provider = _build_provider(settings)

    async with AsyncExitStack() as stack:
        await stack.enter_async_context(provider)
        image_id = await _resolve_image(settings, provider)
        spec = settings.to_acquisition_spec(
            compartment_id=provider.compartment_id,
            image_id=image_id,
        )
        spec = await _with_shape_sizing(spec, provider)
        notifier = await _open_notifier(settings, stack)
        orchestrator = AcquisitionOrchestrator(provider, notifier)
        summary = await orchestrator.run(spec)

    logger.info("%s", summary.format_report())
    return summary


async def run_inventory(
    settings: Settings | None = None,
    *,
    provider: ComputeProvider | None = None,
) -> Inventory:
    """List the existing instances of every availability domain."""
    if settings is None:
        settings = Settings()
    if provider is None:
        provider = _build_provider(settings)

    async with provider:
        pools = await provider.list_pools()
        return await list_resources_across_pools(provider, pools)
