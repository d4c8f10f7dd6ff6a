"""Per-source scraping of public profiles.

Standard mode asks the rtrvr agent to extract structured facts from one
search URL per source, all sources at once. Deep mode walks the sources in a
fixed priority order, fetches raw pages, runs a second LLM extraction pass
over each page, and then follows a bounded number of links found on them.
"""
from __future__ import annotations

import asyncio
from typing import Callable, Iterable
from urllib.parse import quote, quote_plus

from intervox.agents.extractor import ContentExtractor, has_data, parse_person_data
from intervox.config import SOURCE_CONFIDENCE, settings
from intervox.errors import ScrapeError
from intervox.models.events import LogCategory
from intervox.models.schemas import IdentityCandidate, ScrapedData, ScrapingProgress, SourceType
from intervox.services.event_log import events
from intervox.services.prompt_store import render_prompt
from intervox.tools import rtrvr, web_utils

ProgressCallback = Callable[[ScrapingProgress], None]


def _q(*parts: str | None) -> str:
    return quote_plus(" ".join(p for p in parts if p))


def _wikipedia_title(name: str) -> str:
    return quote(name.strip().replace(" ", "_"))


# Search URLs per source. The first entry is the one standard mode uses.
_SEARCH_URLS: dict[SourceType, Callable[[str, str | None], list[str]]] = {
    SourceType.PROFESSIONAL_NETWORK: lambda name, ctx: [
        f"https://www.linkedin.com/search/results/people/?keywords={_q(name)}",
        f"https://www.google.com/search?q={_q('site:linkedin.com/in', name, ctx)}",
    ],
    SourceType.SOCIAL_NETWORK: lambda name, ctx: [
        f"https://twitter.com/search?q={_q(name)}&f=user",
        f"https://www.google.com/search?q={_q('site:x.com', name)}",
    ],
    SourceType.ENCYCLOPEDIA: lambda name, ctx: [
        f"https://en.wikipedia.org/wiki/{_wikipedia_title(name)}",
        f"https://en.wikipedia.org/w/index.php?search={_q(name, ctx)}",
    ],
    SourceType.NEWS: lambda name, ctx: [
        f"https://news.google.com/search?q={_q(name)}",
        f"https://www.google.com/search?q={_q(name, ctx)}&tbm=nws",
    ],
    SourceType.COMPANY_SITE: lambda name, ctx: [
        f"https://www.google.com/search?q={_q(name, ctx, 'company website about')}",
        f"https://www.google.com/search?q={_q(name, ctx, 'team leadership bio')}",
    ],
    SourceType.PODCAST_DIRECTORY: lambda name, ctx: [
        f"https://www.google.com/search?q={_q(name, 'podcast interview')}",
        f"https://www.listennotes.com/search/?q={_q(name)}",
    ],
    SourceType.VIDEO_PLATFORM: lambda name, ctx: [
        f"https://www.youtube.com/results?search_query={_q(name)}",
        f"https://www.youtube.com/results?search_query={_q(name, 'interview')}",
        f"https://www.youtube.com/results?search_query={_q(name, 'talk')}",
    ],
    SourceType.CODE_HOSTING: lambda name, ctx: [
        f"https://github.com/search?q={_q(name)}&type=users",
    ],
    SourceType.GENERIC_SEARCH: lambda name, ctx: [
        f"https://www.google.com/search?q={_q(name, ctx)}",
        f"https://duckduckgo.com/html/?q={_q(name, ctx)}",
    ],
}

DEEP_SOURCE_PRIORITY: list[SourceType] = [
    SourceType.ENCYCLOPEDIA,
    SourceType.PROFESSIONAL_NETWORK,
    SourceType.NEWS,
    SourceType.VIDEO_PLATFORM,
    SourceType.PODCAST_DIRECTORY,
    SourceType.SOCIAL_NETWORK,
    SourceType.CODE_HOSTING,
    SourceType.COMPANY_SITE,
    SourceType.GENERIC_SEARCH,
]


def available_sources() -> list[SourceType]:
    return [source for source in SourceType if source is not SourceType.OTHER]


def search_urls(source: SourceType, name: str, context: str | None = None) -> list[str]:
    builder = _SEARCH_URLS.get(source)
    return builder(name, context) if builder else []


def source_confidence(source: SourceType) -> int:
    return SOURCE_CONFIDENCE.get(source.value, SOURCE_CONFIDENCE["other"])


def scrape_context(target_context: str | None, confirmed_identity: IdentityCandidate | None) -> str | None:
    if confirmed_identity is not None and confirmed_identity.description:
        return confirmed_identity.description
    return target_context or None


def _context_clause(context: str | None) -> str:
    return f" ({context})" if context else ""


class SourceScraper:
    """Produce ``ScrapedData`` records for one person across source types."""

    def __init__(self, extractor: ContentExtractor | None = None, page_delay: float | None = None):
        self._extractor = extractor
        self.page_delay = settings.scrape_page_delay_seconds if page_delay is None else page_delay

    @property
    def extractor(self) -> ContentExtractor:
        if self._extractor is None:
            self._extractor = ContentExtractor()
        return self._extractor

    async def _agent_extract(
        self, source: SourceType, name: str, context: str | None
    ) -> tuple[ScrapedData | None, float]:
        urls = search_urls(source, name, context)
        if not urls:
            return None, 0.0

        url = urls[0]
        prompt = render_prompt(
            "scraper", "sources", source.value,
            name=name,
            context_clause=_context_clause(context),
        )
        result = await rtrvr.agent(prompt, [url])
        if not result.success:
            raise ScrapeError(
                f"{source.value} extraction failed: {result.error or 'unknown error'}",
                details={"source": source.value, "url": url},
            )

        raw = result.result or ""
        record = ScrapedData(
            source=source,
            source_url=url,
            confidence=source_confidence(source),
            data=parse_person_data(raw),
            raw_content=raw[: settings.raw_content_max_chars] or None,
        )
        return record, result.credits_used

    async def scrape_source(
        self, source: SourceType, name: str, context: str | None = None
    ) -> ScrapedData | None:
        """Scrape one source. Raises on provider failure; ``None`` for unsupported sources."""
        record, _ = await self._agent_extract(source, name, context)
        return record

    async def scrape_all(
        self,
        target_name: str,
        sources: Iterable[SourceType],
        confirmed_identity: IdentityCandidate | None = None,
        on_progress: ProgressCallback | None = None,
        *,
        target_context: str | None = None,
        target_id: str | None = None,
    ) -> list[ScrapedData]:
        """Scrape every source concurrently. A failing source is logged and omitted."""
        sources = list(sources)
        context = scrape_context(target_context, confirmed_identity)
        progress = ScrapingProgress(total_pages=len(sources), status="scraping")

        def report(source: SourceType | None = None) -> None:
            if on_progress is None:
                return
            progress.current_source = source
            on_progress(progress.model_copy())

        async def run(source: SourceType) -> ScrapedData | None:
            events.info(LogCategory.SCRAPER, f"Scraping {source.value}", target_id=target_id)
            try:
                record, credits = await self._agent_extract(source, target_name, context)
            except Exception as e:
                events.warn(
                    LogCategory.SCRAPER,
                    f"{source.value} failed: {e}",
                    {"source": source.value},
                    target_id=target_id,
                )
                record, credits = None, 0.0
            else:
                if record is not None:
                    events.info(
                        LogCategory.SCRAPER,
                        f"{source.value} returned data",
                        {"source": source.value, "url": record.source_url},
                        target_id=target_id,
                    )
            progress.scraped_pages += 1
            progress.credits_used += credits
            report(source)
            return record

        report()
        results = await asyncio.gather(*(run(source) for source in sources))
        progress.status = "complete"
        report()
        return [record for record in results if record is not None]

    async def _scrape_page(
        self, source: SourceType, url: str, name: str, context: str | None
    ) -> tuple[ScrapedData | None, list[str], float]:
        result = await rtrvr.scrape([url])
        if not result.success or not result.content:
            raise ScrapeError(
                f"Failed to fetch {url}: {result.error or 'empty response'}",
                details={"source": source.value, "url": url},
            )

        links = web_utils.extract_links(result.content)
        text = web_utils.html_to_text(result.content)
        if not text.strip():
            return None, links, result.credits_used

        data = await self.extractor.extract(text, url=url, source=source, name=name, context=context)
        if not has_data(data):
            return None, links, result.credits_used

        record = ScrapedData(
            source=source,
            source_url=url,
            confidence=source_confidence(source),
            data=data,
            raw_content=web_utils.clean_content(text, settings.raw_content_max_chars),
        )
        return record, links, result.credits_used

    async def deep_scrape(
        self,
        target_name: str,
        confirmed_identity: IdentityCandidate | None = None,
        on_progress: ProgressCallback | None = None,
        sources: Iterable[SourceType] | None = None,
        *,
        target_context: str | None = None,
        target_id: str | None = None,
    ) -> list[ScrapedData]:
        """Scrape pages one at a time in source priority order, then follow discovered links."""
        wanted = set(sources) if sources is not None else set(DEEP_SOURCE_PRIORITY)
        order = [source for source in DEEP_SOURCE_PRIORITY if source in wanted]
        context = scrape_context(target_context, confirmed_identity)

        plan: list[tuple[SourceType, str]] = []
        for source in order:
            for url in search_urls(source, target_name, context)[: settings.deep_scrape_urls_per_source]:
                plan.append((source, url))

        progress = ScrapingProgress(total_pages=len(plan), status="searching")
        records: list[ScrapedData] = []
        visited: set[str] = set()
        discovered: list[str] = []

        def report(source: SourceType | None) -> None:
            progress.current_source = source
            if on_progress is not None:
                on_progress(progress.model_copy())

        async def visit(source: SourceType, url: str) -> None:
            if visited:
                await asyncio.sleep(self.page_delay)
            visited.add(url.lower())
            try:
                record, links, credits = await self._scrape_page(source, url, target_name, context)
            except Exception as e:
                events.warn(
                    LogCategory.SCRAPER,
                    f"Skipping {url}: {e}",
                    {"source": source.value},
                    target_id=target_id,
                )
                record, links, credits = None, [], 0.0
            progress.scraped_pages += 1
            progress.credits_used += credits
            if record is not None:
                records.append(record)
                events.info(
                    LogCategory.SCRAPER,
                    f"Extracted data from {web_utils.extract_domain(url)}",
                    {"source": source.value, "url": url},
                    target_id=target_id,
                )
            discovered.extend(links)
            report(source)

        report(None)
        progress.status = "scraping"
        for source, url in plan:
            await visit(source, url)

        follow_ups: list[str] = []
        for link in discovered:
            if len(follow_ups) >= settings.deep_scrape_max_follow_up_links:
                break
            lowered = link.lower()
            if lowered in visited or lowered in (f.lower() for f in follow_ups):
                continue
            if web_utils.detect_source_type(link) is SourceType.GENERIC_SEARCH:
                continue
            follow_ups.append(link)

        if follow_ups:
            events.info(
                LogCategory.SCRAPER,
                f"Following {len(follow_ups)} discovered link(s)",
                target_id=target_id,
            )
            progress.total_pages += len(follow_ups)
            for link in follow_ups:
                await visit(web_utils.detect_source_type(link), link)

        progress.status = "processing"
        report(None)
        progress.status = "complete"
        report(None)
        return records
