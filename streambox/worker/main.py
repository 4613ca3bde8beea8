"""
Standalone stream monitor.

Runs the liveness monitor without the API so an operator can watch the
media engine from a shell. Every tick is logged (DEBUG on the monitor
logger), transitions and frozen-playlist warnings stand out at INFO/WARNING.
"""
import asyncio
import logging

from streambox.core.config import settings
from streambox.services.stream_status import StatusStore
from streambox.worker.monitor import StreamMonitor

logger = logging.getLogger("streambox.worker")


async def run_worker() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("streambox.monitor").setLevel(logging.DEBUG)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    monitor = StreamMonitor(
        StatusStore(),
        settings.probe_url,
        interval=settings.CHECK_INTERVAL,
        timeout=settings.PROBE_TIMEOUT_SEC,
    )
    await monitor.start()
    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await monitor.stop()


def main() -> None:
    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        logger.info("monitor interrupted")


if __name__ == "__main__":
    main()
