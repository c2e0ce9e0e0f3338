"""Storage notification models.

A :class:`PipelineEvent` is transient: it exists for one adapter invocation
and is never persisted.  ``EventOutcome`` reports what the adapter did with
it so callers (the webhook route, tests) can tell a duplicate from a run.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class EventSource(str, Enum):  # noqa: UP042
    STORAGE_OBJECT = "storage-object"
    NOTIFICATION = "Notification"


class EventNamePrefix(str, Enum):  # noqa: UP042
    OBJECT_CREATED = "ObjectCreated"
    OBJECT_REMOVED = "ObjectRemoved"


class PipelineEvent(BaseModel):
    """A normalized storage-change notification.

    ``name_prefix`` is kept as a plain string: unknown prefixes are valid
    input and are ignored by the adapter rather than rejected at parse time.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    name_prefix: str
    object_locator: str
    event_id: str
    status: str = "SUCCEEDED"
    checksum: str | None = None
    size: int | None = None

    @property
    def is_created(self) -> bool:
        return self.name_prefix == EventNamePrefix.OBJECT_CREATED.value

    @property
    def is_removed(self) -> bool:
        return self.name_prefix == EventNamePrefix.OBJECT_REMOVED.value


class EventDisposition(str, Enum):  # noqa: UP042
    """What the adapter did with one event."""

    PROCESSED = "processed"      # pipeline ran (whatever its final status)
    REMOVED = "removed"          # source deleted, embeddings cascaded
    DUPLICATE = "duplicate"      # event id already seen
    STALE = "stale"              # transition precondition not met
    IGNORED = "ignored"          # unknown prefix, non-SUCCEEDED status, unknown target
    FAILED = "failed"            # target could not be resolved or handling raised


class EventOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str
    disposition: EventDisposition
    document_id: str | None = None
    status: str | None = None
    detail: str | None = None
