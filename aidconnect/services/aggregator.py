"""
aggregator.py — Concurrent fan-out over the signal sources for one crisis.

All sources start at once and the aggregator waits until every one has
produced a snippet or given up (each source bounds itself with a timeout).
Whatever came back is merged with the crisis's static fields into a
SignalBag. Partial or total source failure is not an error.
"""

import asyncio
import logging
from typing import Optional

from aidconnect.models.crisis import Crisis
from aidconnect.models.signals import SignalBag, SignalName
from aidconnect.services.classifier import classify_crisis
from aidconnect.services.crisis_feed import CrisisFeed
from aidconnect.services.sources import SignalSource, default_sources

logger = logging.getLogger(__name__)


class CrisisNotFoundError(LookupError):
    """The crisis id is not in the active crisis list."""

    def __init__(self, crisis_id: str) -> None:
        super().__init__(f"Crisis with ID {crisis_id} not found.")
        self.crisis_id = crisis_id
        self.message = str(self)


def static_signals(crisis: Crisis) -> SignalBag:
    return {
        SignalName.CRISIS_NAME.value: crisis.name,
        SignalName.CRISIS_DESCRIPTION.value: crisis.description,
        SignalName.CRISIS_LOCATION.value: crisis.location,
        SignalName.CRISIS_SEVERITY.value: str(crisis.severity),
    }


class DataAggregator:
    def __init__(self, feed: CrisisFeed, sources: Optional[list[SignalSource]] = None) -> None:
        self.feed = feed
        self.sources = sources if sources is not None else default_sources()

    def resolve(self, crisis_id: str) -> Crisis:
        crisis = self.feed.get(crisis_id)
        if crisis is None:
            raise CrisisNotFoundError(crisis_id)
        return crisis

    async def collect(self, crisis: Crisis) -> SignalBag:
        """Fan out to every source, fan in, and merge present snippets."""
        crisis_type = classify_crisis(crisis.name, crisis.description)

        results = await asyncio.gather(
            *(source.fetch(crisis, crisis_type) for source in self.sources),
            return_exceptions=True,
        )

        bag: SignalBag = {}
        for source, result in zip(self.sources, results):
            if isinstance(result, BaseException):
                # fetch() absorbs its own errors; this only catches a broken subclass
                logger.error("%s source raised past its boundary: %r", source.name.value, result)
                continue
            if result:
                bag[source.name.value] = result

        missing = [s.name.value for s in self.sources if s.name.value not in bag]
        if missing:
            logger.info("Signals unavailable for %s: %s", crisis.id, ", ".join(missing))

        bag.update(static_signals(crisis))
        return bag

    async def collect_for(self, crisis_id: str) -> SignalBag:
        """Resolve the id against the feed, then collect. Raises CrisisNotFoundError."""
        return await self.collect(self.resolve(crisis_id))
