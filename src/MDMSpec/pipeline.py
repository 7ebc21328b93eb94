"""End-to-end loading: main specification, section hierarchy, section parameters.

:class:`SpecificationLoader` is the orchestrating caller the presentation
layer talks to. It resolves the main specification through the resolver,
builds the section hierarchy, checks cache freshness, then resolves every
section document in small concurrent batches and attaches its parameters.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from .diagnostics import DiagnosticEvent, DiagnosticsRecorder
from .io import utc_now
from .keys import MAIN_SPEC_NAME
from .SectionHierarchy.builder import build_sections_from_document
from .SectionHierarchy.models import Section
from .SectionHierarchy.parameters import extract_parameters
from .SpecCache.resolver import CacheTierResolver

LOGGER = logging.getLogger(__name__)

__all__ = ["SECTION_BATCH_SIZE", "LoadResult", "SpecificationLoader"]

SECTION_BATCH_SIZE = 5
SECTION_BATCH_DELAY_S = 0.1


@dataclass(frozen=True)
class LoadResult:
    """Outcome of one full load.

    Attributes:
        main_spec: The resolved main specification document.
        sections: Sections with parameters attached.
        loaded_at: When the load finished (UTC).
        main_spec_tier: Tier that provided the main specification.
        cache_fresh: Whether the persisted cache manifest is fresh.
        diagnostics: Events recorded while this load ran.
    """

    main_spec: Any
    sections: Tuple[Section, ...]
    loaded_at: datetime
    main_spec_tier: str
    cache_fresh: bool
    diagnostics: Tuple[DiagnosticEvent, ...] = field(default_factory=tuple)

    @property
    def from_fallback(self) -> bool:
        return self.main_spec_tier == "fallback"

    @property
    def total_sections(self) -> int:
        return len(self.sections)

    @property
    def total_parameters(self) -> int:
        return sum(len(section.parameters) for section in self.sections)

    def section(self, identifier: str) -> Optional[Section]:
        for section in self.sections:
            if section.identifier == identifier:
                return section
        return None


class SpecificationLoader:
    """Load the full section list with parameters.

    Concurrent :meth:`load_all` calls share one in-flight load.
    """

    def __init__(
        self,
        resolver: CacheTierResolver,
        *,
        batch_size: int = SECTION_BATCH_SIZE,
        batch_delay_s: float = SECTION_BATCH_DELAY_S,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {batch_size}")
        if batch_delay_s < 0:
            raise ValueError(f"batch_delay_s must be >= 0, got {batch_delay_s}")
        self.resolver = resolver
        self.batch_size = batch_size
        self.batch_delay_s = batch_delay_s
        self._sleep = sleep or asyncio.sleep
        self._inflight: Optional["asyncio.Future[LoadResult]"] = None
        self._inflight_forced = False
        self.last_result: Optional[LoadResult] = None

    @property
    def diagnostics(self) -> DiagnosticsRecorder:
        return self.resolver.diagnostics

    async def load_all(self, *, force_refresh: bool = False) -> LoadResult:
        """Load every section, joining a compatible load already in flight.

        A forced refresh requested while a regular load runs is queued behind
        it rather than merged into it.
        """

        inflight = self._inflight
        if inflight is None or inflight.done():
            self._inflight = asyncio.ensure_future(self._load(force_refresh))
            self._inflight_forced = force_refresh
        elif force_refresh and not self._inflight_forced:
            self._inflight = asyncio.ensure_future(self._load_after(inflight))
            self._inflight_forced = True
        return await asyncio.shield(self._inflight)

    async def _load_after(self, previous: "asyncio.Future[LoadResult]") -> LoadResult:
        await asyncio.wait({previous})
        return await self._load(True)

    async def _populate(self, section: Section, force_refresh: bool) -> Section:
        document = await self.resolver.resolve_section(
            section.document_name, force_refresh=force_refresh
        )
        try:
            parameters = extract_parameters(document, platforms=sorted(section.platforms))
        except (TypeError, ValueError, AttributeError, KeyError, IndexError) as exc:
            LOGGER.warning(
                "could not extract parameters for %s: %s",
                section.identifier,
                exc,
                extra={"stage": "load", "section": section.identifier},
            )
            self.diagnostics.emit(
                "parameters_skipped",
                f"section {section.identifier} document is malformed: {exc}",
                section=section.identifier,
            )
            return section
        return section.with_parameters(parameters)

    async def _load(self, force_refresh: bool) -> LoadResult:
        first_event = len(self.diagnostics)
        entry = await self.resolver.resolve_entry(MAIN_SPEC_NAME, force_refresh=force_refresh)
        sections = build_sections_from_document(entry.document, diagnostics=self.diagnostics)

        fresh = await self.resolver.is_cache_fresh()
        if not fresh and self.resolver.config.get("cache_enabled"):
            self.diagnostics.emit(
                "refresh_recommended",
                "persisted cache is missing or stale; schedule a refresh",
            )

        populated: List[Section] = []
        for start in range(0, len(sections), self.batch_size):
            batch = sections[start : start + self.batch_size]
            populated.extend(
                await asyncio.gather(*(self._populate(section, force_refresh) for section in batch))
            )
            LOGGER.debug(
                "loaded sections %d-%d of %d",
                start + 1,
                start + len(batch),
                len(sections),
                extra={"stage": "load"},
            )
            if start + self.batch_size < len(sections) and self.batch_delay_s:
                await self._sleep(self.batch_delay_s)

        result = LoadResult(
            main_spec=entry.document,
            sections=tuple(populated),
            loaded_at=utc_now(),
            main_spec_tier=entry.tier,
            cache_fresh=fresh,
            diagnostics=tuple(self.diagnostics.events[first_event:]),
        )
        LOGGER.info(
            "loaded %d sections with %d parameters (main specification from %s tier)",
            result.total_sections,
            result.total_parameters,
            entry.tier,
            extra={"stage": "load"},
        )
        self.last_result = result
        return result
