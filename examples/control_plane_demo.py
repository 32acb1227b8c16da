"""Demo script for the control plane with flaky simulated sources."""

import asyncio
import random
import sys
from pathlib import Path

from loguru import logger

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from newsguard.collectors import BaseSource
from newsguard.config import settings
from newsguard.context import ControlPlane
from newsguard.errors import TransientUpstreamFailure
from newsguard.models import CollectedItem
from newsguard.utils.log import setup_logging


class FlakySource(BaseSource):
    """Simulated provider that fails a fraction of requests."""

    def __init__(self, name: str, failure_rate: float, headlines: list[str]):
        self.name = name
        self.failure_rate = failure_rate
        self.headlines = headlines

    async def fetch(self) -> list[CollectedItem]:
        await asyncio.sleep(0.1)
        if random.random() < self.failure_rate:
            raise TransientUpstreamFailure(self.name, "simulated outage")
        return [
            CollectedItem(url=f"https://{self.name}.example/{i}", headline=h, source=self.name)
            for i, h in enumerate(self.headlines)
        ]


async def main():
    """Run a few collection passes and a degraded feed request."""
    setup_logging()

    sources = [
        FlakySource("wire", 0.2, ["Fed raises rates", "Fed raises rates!", "Storm hits coast"]),
        FlakySource("daily", 0.6, ["Team wins final", "Election results due"]),
    ]
    plane = ControlPlane.from_settings(
        settings.model_copy(update={"retry_base_delay": 0.1, "scheduler_retry_delay": 0.5}),
        sources=sources,
    )
    await plane.start()

    try:
        for _ in range(3):
            try:
                run = await plane.scheduler.execute_collection()
                logger.info(
                    f"Run {run.id}: {run.items_collected} items, "
                    f"{run.duplicates_removed} duplicates removed, "
                    f"{run.sources_with_errors} sources with errors"
                )
            except Exception as e:
                logger.error(f"Collection failed: {e}")

        stats = plane.scheduler.get_collection_stats()
        logger.info(f"Stats: {stats.model_dump()}")

        async def personalize():
            raise TransientUpstreamFailure("personalization", "model timeout")

        result = await plane.degradation.run(
            "feed-demo-user", personalize, breaker="personalization"
        )
        logger.info(f"Feed degraded: {result.degraded}, served {result.fallback.kind.value}")
        logger.info(f"Health: {plane.health()}")
    finally:
        await plane.close()


if __name__ == "__main__":
    asyncio.run(main())
