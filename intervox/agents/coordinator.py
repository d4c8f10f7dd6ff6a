"""Investigation coordinator.

Owns every investigation record and drives it through identity resolution,
scraping and persona synthesis. Identity resolution is awaited inline; the
scrape and persona stages run in a supervised background task per
investigation, each under its own deadline.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable, TypeVar

from loguru import logger

from intervox.agents.conversation import ConversationManager
from intervox.agents.identity_resolver import IdentityResolver
from intervox.agents.persona import PersonaSynthesizer, count_data_points
from intervox.agents.scraper import SourceScraper, available_sources
from intervox.config import settings
from intervox.errors import (
    ErrorKind,
    IntervoxError,
    InvalidStateError,
    NotFoundError,
    ResolutionError,
    ScrapeError,
    StageTimeoutError,
    SynthesisError,
    ValidationError,
    error_kind_of,
)
from intervox.models.events import LogCategory
from intervox.models.schemas import (
    Depth,
    IdentityCandidate,
    IdentityConfirmation,
    InvestigationResult,
    InvestigationStatus,
    ScrapedData,
    ScrapingProgress,
    SourceType,
    utc_now,
)
from intervox.services.event_log import events
from intervox.services.store import InMemoryStore, Store

T = TypeVar("T")
ProgressCallback = Callable[[ScrapingProgress], None]

S = InvestigationStatus

TRANSITIONS: dict[InvestigationStatus, frozenset[InvestigationStatus]] = {
    S.PENDING: frozenset({S.CONFIRMING_IDENTITY, S.SCRAPING, S.ERROR}),
    S.CONFIRMING_IDENTITY: frozenset({S.CONFIRMING_IDENTITY, S.SCRAPING, S.ERROR}),
    S.SCRAPING: frozenset({S.BUILDING_PERSONA, S.ERROR}),
    S.BUILDING_PERSONA: frozenset({S.READY, S.ERROR}),
    S.READY: frozenset(),
    S.ERROR: frozenset(),
}
TERMINAL = frozenset({S.READY, S.ERROR})

CONFIRMED_PLACEHOLDER_CONFIDENCE = 70
QUICK_PLACEHOLDER_CONFIDENCE = 80


class InvestigationCoordinator:
    def __init__(
        self,
        store: Store[InvestigationResult] | None = None,
        resolver: IdentityResolver | None = None,
        scraper: SourceScraper | None = None,
        synthesizer: PersonaSynthesizer | None = None,
        conversations: ConversationManager | None = None,
        sources: Iterable[SourceType] | None = None,
    ):
        self.store: Store[InvestigationResult] = store or InMemoryStore(
            settings.investigation_ttl_hours, on_evict=self._forget
        )
        self.resolver = resolver or IdentityResolver()
        self.scraper = scraper or SourceScraper()
        self.synthesizer = synthesizer or PersonaSynthesizer()
        self.conversations = conversations or ConversationManager()
        self.sources = list(sources) if sources is not None else available_sources()
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._progress: dict[str, list[ProgressCallback]] = {}

    # --- state ---

    def _save(self, record: InvestigationResult) -> None:
        record.updated_at = utc_now()
        self.store.put(record.target_id, record)

    def _transition(self, record: InvestigationResult, status: InvestigationStatus) -> None:
        if status not in TRANSITIONS[record.status]:
            raise InvalidStateError(
                f"Cannot move investigation from {record.status.value} to {status.value}",
                current=record.status.value,
                requested=status.value,
            )
        previous = record.status
        record.status = status
        self._save(record)
        events.info(
            LogCategory.ORCHESTRATOR,
            f"Status {previous.value} -> {status.value}",
            target_id=record.target_id,
        )

    def _fail(self, record: InvestigationResult, exc: BaseException) -> None:
        if record.status in TERMINAL:
            return
        record.error = str(exc) or type(exc).__name__
        record.error_kind = error_kind_of(exc)
        self._transition(record, S.ERROR)
        events.error(
            LogCategory.ORCHESTRATOR,
            f"Investigation failed: {record.error}",
            {"kind": record.error_kind.value},
            target_id=record.target_id,
        )

    def _forget(self, target_id: str) -> None:
        """Drop per-investigation state once its record leaves the store."""
        self._progress.pop(target_id, None)
        events.clear_events(target_id)

    def _require(self, target_id: str) -> InvestigationResult:
        record = self.store.get(target_id)
        if record is None:
            raise NotFoundError(f"Investigation not found: {target_id}")
        return record

    @staticmethod
    def _new_record(name: str, context: str | None, depth: Depth) -> InvestigationResult:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Target name is required")
        return InvestigationResult(
            target_name=name,
            target_context=(context or "").strip() or None,
            depth=depth,
        )

    # --- identity ---

    async def _resolve(self, record: InvestigationResult, context: str | None) -> None:
        try:
            candidates = await asyncio.wait_for(
                self.resolver.find_candidates(record.target_name, context, target_id=record.target_id),
                timeout=settings.resolve_timeout_seconds,
            )
        except asyncio.TimeoutError:
            self._fail(record, StageTimeoutError("identity resolution", settings.resolve_timeout_seconds))
            return
        except StageTimeoutError as e:
            self._fail(record, e)
            return
        except Exception as e:
            self._fail(record, ResolutionError(f"Identity search failed: {e}"))
            return

        if not candidates:
            self._fail(record, ResolutionError(f"No identity candidates found for {record.target_name}"))
            return
        record.identity_candidates = list(candidates)
        self._transition(record, S.CONFIRMING_IDENTITY)

    async def start(
        self, name: str, context: str | None = None, depth: Depth = "standard"
    ) -> InvestigationResult:
        """Create an investigation and search for identity candidates.

        The search is awaited. On return the record is either in
        ``confirming_identity`` with candidates or in ``error``.
        """
        record = self._new_record(name, context, depth)
        self.store.evict_expired()
        self._save(record)
        events.info(
            LogCategory.ORCHESTRATOR,
            f"Investigation started for {record.target_name}",
            {"depth": depth},
            target_id=record.target_id,
        )
        await self._resolve(record, record.target_context)
        return record

    async def confirm(self, target_id: str, confirmation: IdentityConfirmation) -> InvestigationResult:
        record = self._require(target_id)
        if record.status is not S.CONFIRMING_IDENTITY:
            raise InvalidStateError(
                f"Investigation {target_id} is {record.status.value}, not awaiting confirmation",
                current=record.status.value,
                requested="confirm",
            )
        extra = (confirmation.additional_context or "").strip()

        if not confirmation.confirmed:
            if not extra:
                self._fail(record, ResolutionError("Identity not confirmed"))
                return record
            record.target_context = " ".join(p for p in (record.target_context, extra) if p)
            events.info(
                LogCategory.ORCHESTRATOR,
                "Searching again with additional context",
                {"context": record.target_context},
                target_id=target_id,
            )
            await self._resolve(record, record.target_context)
            return record

        candidate = next(
            (c for c in record.identity_candidates or [] if c.id == confirmation.selected_candidate_id),
            None,
        )
        if candidate is None:
            if not extra:
                self._fail(record, ResolutionError("No candidate selected"))
                return record
            candidate = IdentityCandidate(
                name=record.target_name,
                description=extra,
                confidence=CONFIRMED_PLACEHOLDER_CONFIDENCE,
            )

        record.confirmed_identity = candidate
        events.info(
            LogCategory.ORCHESTRATOR,
            f"Identity confirmed: {candidate.name}",
            {"candidateId": candidate.id, "confidence": candidate.confidence},
            target_id=target_id,
        )
        self._transition(record, S.SCRAPING)
        self._launch(record)
        return record

    async def quick_start(
        self, name: str, context: str | None = None, depth: Depth = "quick"
    ) -> InvestigationResult:
        """Skip confirmation and go straight to scraping with a placeholder identity."""
        record = self._new_record(name, context, depth)
        self.store.evict_expired()
        record.confirmed_identity = IdentityCandidate(
            name=record.target_name,
            description=record.target_context or "",
            confidence=QUICK_PLACEHOLDER_CONFIDENCE,
        )
        self._save(record)
        events.info(
            LogCategory.ORCHESTRATOR,
            f"Quick investigation started for {record.target_name}",
            {"depth": depth},
            target_id=record.target_id,
        )
        self._transition(record, S.SCRAPING)
        self._launch(record)
        return record

    # --- pipeline ---

    def _launch(self, record: InvestigationResult) -> None:
        target_id = record.target_id
        task = asyncio.create_task(self._run_pipeline(record), name=f"investigation-{target_id}")
        self._tasks[target_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(target_id, None))

    @staticmethod
    async def _stage(
        stage: str,
        seconds: float,
        work: Awaitable[T],
        error_cls: type[IntervoxError],
    ) -> T:
        try:
            return await asyncio.wait_for(work, timeout=seconds)
        except asyncio.TimeoutError as exc:
            raise StageTimeoutError(stage, seconds) from exc
        except IntervoxError:
            raise
        except Exception as exc:
            raise error_cls(f"{stage.capitalize()} failed: {exc}") from exc

    async def _scrape(self, record: InvestigationResult) -> list[ScrapedData]:
        def report(progress: ScrapingProgress) -> None:
            self._publish_progress(record, progress)

        if record.depth == "deep":
            return await self.scraper.deep_scrape(
                record.target_name,
                record.confirmed_identity,
                report,
                target_context=record.target_context,
                target_id=record.target_id,
            )
        return await self.scraper.scrape_all(
            record.target_name,
            self.sources,
            record.confirmed_identity,
            report,
            target_context=record.target_context,
            target_id=record.target_id,
        )

    async def _run_pipeline(self, record: InvestigationResult) -> None:
        target_id = record.target_id
        try:
            scraped = await self._stage(
                "scraping", settings.scrape_timeout_seconds, self._scrape(record), ScrapeError
            )
            record.scraped_data = list(scraped)
            record.sources_scraped = len(record.scraped_data)
            record.data_points = sum(count_data_points(item.data) for item in record.scraped_data)
            events.info(
                LogCategory.ORCHESTRATOR,
                f"Scraped {record.sources_scraped} source(s), {record.data_points} data point(s)",
                target_id=target_id,
            )
            self._transition(record, S.BUILDING_PERSONA)

            persona = await self._stage(
                "persona synthesis",
                settings.persona_timeout_seconds,
                self.synthesizer.build_persona(target_id, record.target_name, record.scraped_data),
                SynthesisError,
            )
            session = self.conversations.start(persona)
            record.persona = persona
            record.conversation_id = session.id
            self._transition(record, S.READY)
        except asyncio.CancelledError:
            self._fail(record, IntervoxError("Investigation cancelled", kind=ErrorKind.CANCELLED))
            raise
        except Exception as e:
            self._fail(record, e)
        finally:
            self._progress.pop(target_id, None)

    # --- progress ---

    def on_progress(self, target_id: str, callback: ProgressCallback) -> Callable[[], None]:
        """Subscribe to scraping progress. Returns an unsubscribe function."""
        callbacks = self._progress.setdefault(target_id, [])
        callbacks.append(callback)

        def unsubscribe() -> None:
            self.off_progress(target_id, callback)

        return unsubscribe

    def off_progress(self, target_id: str, callback: ProgressCallback | None = None) -> None:
        if callback is None:
            self._progress.pop(target_id, None)
            return
        callbacks = self._progress.get(target_id)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)
            if not callbacks:
                del self._progress[target_id]

    def _publish_progress(self, record: InvestigationResult, progress: ScrapingProgress) -> None:
        record.progress = progress
        self._save(record)
        events.debug(
            LogCategory.SCRAPER,
            f"Progress {progress.scraped_pages}/{progress.total_pages} ({progress.status})",
            progress.model_dump(mode="json", by_alias=True),
            target_id=record.target_id,
        )
        for callback in list(self._progress.get(record.target_id, ())):
            try:
                callback(progress)
            except Exception:
                logger.exception(f"Progress callback failed for {record.target_id}")

    # --- queries and control ---

    def get_status(self, target_id: str) -> InvestigationResult | None:
        return self.store.get(target_id)

    def list_investigations(self) -> list[InvestigationResult]:
        return sorted(self.store.values(), key=lambda r: r.created_at)

    async def join(self, target_id: str) -> InvestigationResult:
        """Wait for the background pipeline of ``target_id`` to finish, if any."""
        record = self._require(target_id)
        task = self._tasks.get(target_id)
        if task is not None:
            await asyncio.wait({task})
        return record

    async def cancel(self, target_id: str) -> InvestigationResult:
        record = self._require(target_id)
        if record.status in TERMINAL:
            raise InvalidStateError(
                f"Investigation {target_id} is already {record.status.value}",
                current=record.status.value,
                requested="cancel",
            )
        task = self._tasks.get(target_id)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
        # A task cancelled before its first step never reaches its handler.
        self._fail(record, IntervoxError("Investigation cancelled", kind=ErrorKind.CANCELLED))
        return record

    async def shutdown(self) -> None:
        """Cancel every in-flight pipeline."""
        tasks = dict(self._tasks)
        for task in tasks.values():
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks.values(), return_exceptions=True)
        for target_id in tasks:
            record = self.store.get(target_id)
            if record is not None:
                self._fail(record, IntervoxError("Investigation cancelled", kind=ErrorKind.CANCELLED))
        self._tasks.clear()
        self._progress.clear()
