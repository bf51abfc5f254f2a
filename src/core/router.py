"""Publication routing with a deferred dedup mark.

Routing happens in two explicit phases:
1) `route` decides between direct publication (auto mode) and the approval
   queue (manual mode);
2) `approve` finalizes a queued item: publish, record the decision, mark
   the dedup digest.
The dedup digest is only marked once something is actually published, so a
rejected item never blocks a later corroborating report.
"""

from __future__ import annotations

import logging

from core.approval_queue import ApprovalQueue
from core.classifier import build_report
from core.context import RuntimeContext
from core.dedup import DedupEngine, DedupVerdict
from core.models import MODE_AUTO, Outcome, QueueStatus, Report

LOGGER = logging.getLogger(__name__)


class PublicationRouter:
    """Sends or enqueues classified, non-duplicate, region-allowed reports."""

    def __init__(self, context: RuntimeContext, dedup: DedupEngine, queue: ApprovalQueue) -> None:
        self._context = context
        self._dedup = dedup
        self._queue = queue

    async def route(self, report: Report, verdict: DedupVerdict) -> Outcome:
        """Phase one. Callers must hold `context.inbound_lock`."""

        settings = self._context.storage.get_settings()
        if settings.mode == MODE_AUTO:
            if not settings.target_configured:
                LOGGER.info("Auto mode without target channel, dropping report from %s", report.source_key)
                return Outcome.NO_TARGET
            if not await self._context.publisher.send(settings.target_channel, report.formatted_text):
                return Outcome.SEND_FAILED
            self._dedup.mark(verdict.digest, self._context.clock(), verdict.tokens)
            LOGGER.info("Published report from %s", report.source_key)
            return Outcome.PUBLISHED

        item_id = self._queue.add(
            source=report.source_key,
            raw_text=report.raw_text,
            formatted_text=report.formatted_text,
            dedup_hash=verdict.digest,
            created_at=self._context.clock(),
            permalink=report.permalink,
        )
        item = self._queue.get(item_id)
        try:
            await self._context.operator.notify_pending(item)
        except Exception:
            # The item stays pending and remains reachable from the queue listing.
            LOGGER.exception("Failed to notify operator about item #%s", item_id)
        return Outcome.QUEUED

    async def approve(self, item_id: int) -> Outcome:
        """Phase two: publish a pending item and mark its dedup digest."""

        async with self._context.inbound_lock:
            item = self._queue.get(item_id)
            if item is None or item.status is not QueueStatus.PENDING:
                return Outcome.MISSING

            settings = self._context.storage.get_settings()
            if not settings.target_configured:
                return Outcome.NO_TARGET
            if not await self._context.publisher.send(settings.target_channel, item.formatted_text):
                return Outcome.SEND_FAILED

            self._queue.set_status(item_id, QueueStatus.APPROVED)
            # Only the raw text is queued, so the fingerprint is rebuilt from it.
            tokens = self._dedup.fingerprint(build_report(item.raw_text, item.source))
            self._dedup.mark(item.dedup_hash, self._context.clock(), tokens)
            LOGGER.info("Approved and published item #%s", item_id)
            return Outcome.APPROVED

    async def reject(self, item_id: int) -> Outcome:
        async with self._context.inbound_lock:
            if not self._queue.set_status(item_id, QueueStatus.REJECTED):
                return Outcome.MISSING
        LOGGER.info("Rejected item #%s", item_id)
        return Outcome.REJECTED

    @property
    def queue(self) -> ApprovalQueue:
        return self._queue
