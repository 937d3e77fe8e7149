"""
SerperAdapter — Recent news headlines from the Serper.dev news endpoint.

Feeds the newsSnippet signal. Only the last day of coverage is requested
by default; older articles rarely describe the current state of a crisis.

Without SERPER_API_KEY the adapter reports enabled=False and the news
source uses its templated snippet instead of calling out.
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ValidationError

from aidconnect.core.config import settings

logger = logging.getLogger(__name__)

SERPER_NEWS_URL = "https://google.serper.dev/news"

# Serper "tbs" values: past hour / day / week
RECENCY_HOUR = "qdr:h"
RECENCY_DAY = "qdr:d"
RECENCY_WEEK = "qdr:w"


class Headline(BaseModel):
    title: str = ""
    snippet: str = ""
    source: str = ""
    date: str = ""
    link: str = ""

    def as_line(self) -> str:
        """Render as 'title: snippet', or whichever half is present."""
        return ": ".join(part.strip() for part in (self.title, self.snippet) if part.strip())


class SerperAdapter:
    def __init__(
        self,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = settings.serper_api_key if api_key is None else api_key
        self.enabled = bool(self.api_key)
        self._transport = transport

        if not self.enabled:
            logger.info("SERPER_API_KEY not set — news signal will use templated snippets.")

    async def news_search(
        self,
        query: str,
        num_results: int = 5,
        recency: Optional[str] = RECENCY_DAY,
    ) -> list[Headline]:
        """
        Search recent news for `query`.

        Returns at most `num_results` headlines. Returns [] when disabled,
        on any HTTP failure, or when the payload has no "news" list.
        Entries that don't look like articles are skipped.
        """
        if not self.enabled:
            return []

        body: dict = {"q": query, "num": num_results}
        if recency:
            body["tbs"] = recency

        try:
            async with httpx.AsyncClient(
                timeout=settings.http_timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(
                    SERPER_NEWS_URL,
                    headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
                    json=body,
                )
                response.raise_for_status()
                items = response.json().get("news", [])
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Serper news error: %s — %s", exc.response.status_code, exc.response.text[:200]
            )
            return []
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.error("Serper news request failed: %s", exc)
            return []

        headlines = []
        for item in items if isinstance(items, list) else []:
            try:
                headline = Headline.model_validate(item)
            except ValidationError:
                continue
            if headline.as_line():
                headlines.append(headline)
        return headlines[:num_results]


# Module-level singleton
serper_adapter = SerperAdapter()
