"""Runner for the long-lived background processes."""

import asyncio
import signal
from collections.abc import Awaitable, Callable

from restroom.lib.config import get_settings
from restroom.logging import configure, get_logger


async def _run_until_signalled(
    main: Callable[[], Awaitable[None]], name: str
) -> None:
    logger = get_logger(f"{name}.service")
    loop = asyncio.get_running_loop()
    task = asyncio.ensure_future(main())

    def _shutdown(sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down", sig.name)
        task.cancel()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _shutdown, sig)
    try:
        await task
    except asyncio.CancelledError:
        pass
    finally:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)


def run_service(
    main: Callable[[], Awaitable[None]],
    *,
    enabled: Callable[[], bool] | None = None,
    name: str = "service",
) -> None:
    """Configure logging and run an async service until SIGTERM/SIGINT.

    The service coroutine is cancelled on a signal, so its ``finally``
    blocks (closing Redis and the database) still run.

    Args:
        main: Async function to run (typically named ``run``).
        enabled: Optional callable that returns False to skip running.
        name: Service name for logging.
    """
    configure(get_settings().log_level)

    if enabled is not None and not enabled():
        get_logger(f"{name}.service").info(
            "%s service is disabled, exiting", name.capitalize()
        )
        return

    asyncio.run(_run_until_signalled(main, name))
