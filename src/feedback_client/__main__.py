"""Entrypoint: python -m feedback_client

Drains the pending payload queue and fetches the remote conversation once,
then exits. Useful for flushing a store left behind by a host process.
"""
from __future__ import annotations

import asyncio
import logging

from feedback_client.app import create_client
from feedback_client.config import settings

logger = logging.getLogger("feedback_client")


async def _drain() -> None:
    client = await create_client(settings)
    await client.events.start()
    try:
        sent = await client.send_worker.run_once()
        result = await client.fetch_messages()
        logger.info(
            "Delivered %d payloads, fetched %d messages, %d still pending",
            sent, result.fetched, await client.pending_payloads(),
        )
    finally:
        await client.stop()


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(_drain())


if __name__ == "__main__":
    main()
