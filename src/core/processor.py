"""Core inbound report pipeline.

This module is integration-agnostic. It only relies on ports for storage,
publishing and operator notifications, enabling other transports without
changes here.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.approval_queue import ApprovalQueue
from core.classifier import build_report
from core.config import DedupConfig
from core.context import RuntimeContext
from core.dedup import DedupEngine
from core.models import InboundMessage, Outcome
from core.router import PublicationRouter
from core.source_keys import normalize_source_key
from core.status_filter import is_status_only

LOGGER = logging.getLogger(__name__)


class ReportProcessor:
    """Orchestrates classification, filtering, dedup and routing."""

    def __init__(self, context: RuntimeContext, dedup_config: Optional[DedupConfig] = None) -> None:
        self._context = context
        self._dedup = DedupEngine(context.storage, dedup_config)
        self._router = PublicationRouter(context, self._dedup, ApprovalQueue(context.storage))

    @property
    def router(self) -> PublicationRouter:
        return self._router

    def _is_tracked(self, source_key: str) -> bool:
        tracked = {normalize_source_key(key) for key in self._context.storage.list_sources()}
        return normalize_source_key(source_key) in tracked

    async def handle(self, message: InboundMessage) -> Outcome:
        """Process one inbound message end to end."""

        if not self._is_tracked(message.source_key):
            return Outcome.IGNORED

        # Media-only messages without captions are ignored
        if not message.text.strip():
            return Outcome.IGNORED

        storage = self._context.storage
        report = build_report(message.text, message.source_key, storage.get_places(), message.permalink)

        if is_status_only(report.normalized_text):
            LOGGER.info("Status-only report from %s skipped", message.source_key)
            return Outcome.STATUS_ONLY

        # Region filter is strict: at least one detected region must be allowed.
        settings = storage.get_settings()
        if not report.regions & settings.allowed_regions:
            LOGGER.info(
                "Report from %s outside allowed regions (%s)",
                message.source_key,
                ", ".join(sorted(report.regions)) or "none",
            )
            return Outcome.REGION_FILTERED

        # Check and the eventual mark must not interleave with other handlers.
        async with self._context.inbound_lock:
            verdict = self._dedup.check(report, settings.dedup_window_minutes, self._context.clock())
            if verdict.duplicate:
                LOGGER.info("Dedup skip for %s (%s)", message.source_key, verdict.reason)
                return Outcome.DUPLICATE
            return await self._router.route(report, verdict)
