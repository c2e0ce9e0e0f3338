"""Storage-change notifications -> ingestion pipeline runs.

Accepted payload shapes (``EventIngestionAdapter.normalize``):

* **Flat event**: ``{"source", "namePrefix", "objectLocator", "eventId",
  "status"}``.  snake_case keys are accepted too.
* **Object-storage batch**: ``{"Records": [{"eventName": "ObjectCreated:Put",
  "s3": {"bucket": {"name"}, "object": {"key", "eTag", "size",
  "sequencer"}}}, ...]}``.  Keys arrive URL-encoded with ``+`` for spaces.
* **Notification envelope**: ``{"Type": "Notification", "Message": "<json>"}``
  wrapping either of the above.

Idempotency has two layers.  The primary guard is the document store's
conditional transition: a run whose precondition no longer holds raises
``ConflictError``, which this adapter logs and reports as ``stale``.  On
top of that, event ids are claimed in a TTL dedup set so an exact
redelivery is dropped before any lookup happens.  A claim is released when
handling fails or ends in a Failed status, so re-sending the same event
retries the document.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote_plus

from docrag.interfaces.cache_provider import ICacheProvider
from docrag.interfaces.document_store import IDocumentStore
from docrag.models.document import DocumentRecord, DocumentStatus, split_locator
from docrag.models.events import (
    EventDisposition,
    EventOutcome,
    EventSource,
    PipelineEvent,
)
from docrag.services.document_service import DocumentService
from docrag.utils.concurrency import throttled_gather
from docrag.utils.errors import ConflictError, NotFoundError
from docrag.utils.logging import get_logger

if TYPE_CHECKING:
    from docrag.pipeline.ingestion_pipeline import IngestionPipeline

_DEDUP_PREFIX = "event:"


class EventIngestionAdapter:
    """Translates storage notifications into pipeline transitions.

    Parameters
    ----------
    document_store:
        Used to resolve events to Document Records.
    document_service:
        Registers unknown uploads (when enabled) and cascades removals.
    pipeline:
        Runs extraction/embedding for resolved records.
    dedup_cache:
        Holds claimed event ids.
    auto_register:
        When ``True`` an ``ObjectCreated`` event for an unregistered key of
        the form ``<user_id>/<filename>`` creates the record.  When ``False``
        such events fail with :class:`NotFoundError`.
    max_concurrent_runs:
        Upper bound on pipeline runs in flight in :meth:`handle_many`.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        document_service: DocumentService,
        pipeline: IngestionPipeline,
        dedup_cache: ICacheProvider,
        auto_register: bool = False,
        max_concurrent_runs: int = 4,
    ) -> None:
        self._store = document_store
        self._documents = document_service
        self._pipeline = pipeline
        self._dedup = dedup_cache
        self._auto_register = auto_register
        self._semaphore = asyncio.Semaphore(max(1, max_concurrent_runs))
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    @classmethod
    def normalize(cls, payload: dict[str, Any]) -> list[PipelineEvent]:
        """Turn a raw notification body into zero or more events.

        Raises
        ------
        ValueError
            If the payload matches none of the accepted shapes.
        """
        if not isinstance(payload, dict):
            raise ValueError("Notification payload must be a JSON object")

        if payload.get("Type") == EventSource.NOTIFICATION.value:
            return cls._from_envelope(payload)
        if "Records" in payload:
            return [cls._from_record(r, EventSource.STORAGE_OBJECT.value) for r in payload["Records"] or []]
        return [cls._from_flat(payload)]

    @classmethod
    def _from_envelope(cls, payload: dict[str, Any]) -> list[PipelineEvent]:
        message = payload.get("Message")
        if isinstance(message, str):
            try:
                message = json.loads(message)
            except json.JSONDecodeError as exc:
                raise ValueError("Notification Message is not valid JSON") from exc
        if not isinstance(message, dict):
            raise ValueError("Notification Message must be a JSON object")

        source = EventSource.NOTIFICATION.value
        if "Records" in message:
            return [cls._from_record(r, source) for r in message["Records"] or []]
        event = cls._from_flat({"eventId": payload.get("MessageId"), **message})
        return [event.model_copy(update={"source": source})]

    @staticmethod
    def _from_flat(payload: dict[str, Any]) -> PipelineEvent:
        def pick(*names: str) -> Any:
            for name in names:
                if payload.get(name) is not None:
                    return payload[name]
            return None

        locator = pick("objectLocator", "object_locator")
        event_id = pick("eventId", "event_id")
        prefix = pick("namePrefix", "name_prefix")
        if not locator or not event_id or not prefix:
            raise ValueError("Event requires namePrefix, objectLocator and eventId")
        return PipelineEvent(
            source=pick("source") or EventSource.NOTIFICATION.value,
            name_prefix=str(prefix),
            object_locator=str(locator),
            event_id=str(event_id),
            status=str(pick("status", "Status") or "SUCCEEDED"),
            checksum=pick("checksum", "eTag"),
            size=pick("size"),
        )

    @staticmethod
    def _from_record(record: dict[str, Any], source: str) -> PipelineEvent:
        try:
            bucket = record["s3"]["bucket"]["name"]
            obj = record["s3"]["object"]
            raw_key = obj["key"]
            event_name = record["eventName"]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Storage record is missing field {exc}") from exc

        locator = f"{bucket}/{unquote_plus(raw_key)}"
        checksum = (obj.get("eTag") or "").strip('"') or None
        request_id = (record.get("responseElements") or {}).get("x-amz-request-id")
        marker = obj.get("sequencer") or checksum or request_id or ""
        return PipelineEvent(
            source=source,
            name_prefix=event_name.split(":", 1)[0],
            object_locator=locator,
            event_id=f"{event_name}:{locator}:{marker}",
            checksum=checksum,
            size=obj.get("size"),
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def handle(self, event: PipelineEvent) -> EventOutcome:
        """Apply one event.

        Raises
        ------
        NotFoundError
            If an ``ObjectCreated`` event cannot be resolved to a record.
        """
        log = self._logger.bind(event_id=event.event_id, locator=event.object_locator)

        if event.status.upper() != "SUCCEEDED":
            log.info("event_ignored", reason="status", status=event.status)
            return self._outcome(event, EventDisposition.IGNORED, detail=f"status {event.status}")
        if not (event.is_created or event.is_removed):
            log.info("event_ignored", reason="prefix", name_prefix=event.name_prefix)
            return self._outcome(event, EventDisposition.IGNORED, detail=f"prefix {event.name_prefix}")

        dedup_key = _DEDUP_PREFIX + event.event_id
        if not await self._dedup.add_if_absent(dedup_key):
            log.info("event_duplicate")
            return self._outcome(event, EventDisposition.DUPLICATE)

        try:
            if event.is_created:
                outcome = await self._handle_created(event)
            else:
                outcome = await self._handle_removed(event)
        except ConflictError as exc:
            log.info("event_stale", current_status=exc.current_status, reason=exc.message)
            return self._outcome(event, EventDisposition.STALE, status=exc.current_status)
        except Exception:
            await self._dedup.delete(dedup_key)
            raise

        if outcome.disposition is EventDisposition.PROCESSED and DocumentStatus(outcome.status).is_failure:
            await self._dedup.delete(dedup_key)
        return outcome

    async def handle_many(self, events: list[PipelineEvent]) -> list[EventOutcome]:
        """Apply events concurrently; one failing event never affects the others."""
        results = await throttled_gather([self.handle(e) for e in events], self._semaphore)
        outcomes: list[EventOutcome] = []
        for event, result in zip(events, results):
            if isinstance(result, BaseException):
                self._logger.error(
                    "event_failed",
                    event_id=event.event_id,
                    error_type=type(result).__name__,
                    error=str(result),
                )
                outcomes.append(self._outcome(event, EventDisposition.FAILED, detail=str(result)))
            else:
                outcomes.append(result)
        return outcomes

    async def _handle_created(self, event: PipelineEvent) -> EventOutcome:
        record = await self._store.get_by_locator(event.object_locator)
        if record is None:
            record = await self._register(event)
        self._logger.info("event_dispatch", event_id=event.event_id, document_id=record.id)
        final = await self._pipeline.run(record.id)
        return self._outcome(event, EventDisposition.PROCESSED, document_id=final.id, status=final.status.value)

    async def _handle_removed(self, event: PipelineEvent) -> EventOutcome:
        # A stamped record whose purge failed is still the target of a redelivery.
        record = await self._store.get_by_locator(event.object_locator, include_deleted=True)
        if record is None:
            self._logger.info("event_ignored", reason="unknown_target", event_id=event.event_id)
            return self._outcome(event, EventDisposition.IGNORED, detail="unknown object")
        await self._documents.remove_source(record)
        return self._outcome(event, EventDisposition.REMOVED, document_id=record.id)

    async def _register(self, event: PipelineEvent) -> DocumentRecord:
        owner = self._owner_of(event.object_locator)
        if not self._auto_register or not owner:
            raise NotFoundError(message=f"No document registered for {event.object_locator}")
        try:
            return await self._documents.register(
                source_locator=event.object_locator,
                user_id=owner,
                checksum=event.checksum,
                size=event.size,
            )
        except ConflictError:
            # Registered concurrently by another delivery.
            record = await self._store.get_by_locator(event.object_locator)
            if record is None:
                raise
            return record

    @staticmethod
    def _owner_of(locator: str) -> str | None:
        _, key = split_locator(locator)
        if "/" not in key:
            return None
        return key.split("/", 1)[0] or None

    @staticmethod
    def _outcome(
        event: PipelineEvent,
        disposition: EventDisposition,
        document_id: str | None = None,
        status: str | None = None,
        detail: str | None = None,
    ) -> EventOutcome:
        return EventOutcome(
            event_id=event.event_id,
            disposition=disposition,
            document_id=document_id,
            status=status,
            detail=detail,
        )
