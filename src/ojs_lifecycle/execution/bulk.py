"""Bulk enqueue with atomic or partial semantics and idempotency keys.

Manifesto:
A batch is admitted item by item, but the caller chooses what a single
bad item means.  ``partial`` lets every valid job through; ``atomic``
rolls the whole batch back.  An idempotency key makes a retried request
return the first answer instead of enqueueing twice.

ARCHITECTURE
────────────
::

    BulkEnqueueProcessor (caller-owned, holds the idempotency cache)
      │
      simulate_bulk_enqueue(request)
        1. key seen?          same content  → cached response
                              other content → IDEMPOTENCY_CONFLICT (not cached)
        2. > 1000 jobs        → every item BATCH_TOO_LARGE
        3. validate each job  → created (with id) | failed (VALIDATION_ERROR)
        4. atomic + failures  → every item ATOMIC_ROLLBACK, no ids
        5. key given          → cache (content hash, response)

      clear_idempotency_cache()

Job ids come from :class:`SeededJobIdFactory`: UUIDv7-shaped, ordered,
and reproducible for a given seed, so two processors fed the same
requests hand out the same ids.

Tags:
    ojs-lifecycle, execution, bulk, idempotency, atomicity

Doc-Types:
    api-reference
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ojs_lifecycle.core.hashing import compute_payload_hash
from ojs_lifecycle.core.logging import get_logger
from ojs_lifecycle.core.payload import MAX_NAME_BYTES, utf8_byte_length
from ojs_lifecycle.core.prng import DEFAULT_SEED, Mulberry32

logger = get_logger(__name__)

MAX_BATCH_SIZE = 1000
ID_EPOCH_MS = 1_735_689_600_000  # 2025-01-01T00:00:00Z

BulkAtomicity = Literal["atomic", "partial"]
BulkItemStatus = Literal["created", "duplicate", "failed"]

ROLLBACK_REASON = "batch rolled back due to other failures"


class BulkEnqueueRequest(BaseModel):
    """A batch of job descriptions to admit together.

    Jobs are kept as raw mappings: validating them is the processor's job,
    and an invalid item must fail on its own rather than reject the request.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    atomicity: BulkAtomicity = "partial"
    idempotency_key: str | None = Field(default=None, alias="idempotencyKey")
    jobs: list[Any] = Field(default_factory=list)

    def content_hash(self) -> str:
        return compute_payload_hash({"atomicity": self.atomicity, "jobs": self.jobs})


@dataclass(frozen=True)
class BulkOperationResult:
    index: int
    status: BulkItemStatus
    job_id: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"index": self.index, "status": self.status}
        if self.job_id is not None:
            result["jobId"] = self.job_id
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass(frozen=True)
class BulkEnqueueResponse:
    total: int
    succeeded: int
    failed: int
    items: tuple[BulkOperationResult, ...]

    @classmethod
    def from_items(cls, items: list[BulkOperationResult]) -> BulkEnqueueResponse:
        succeeded = sum(1 for item in items if item.status == "created")
        failed = sum(1 for item in items if item.status == "failed")
        return cls(total=len(items), succeeded=succeeded, failed=failed, items=tuple(items))

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "items": [item.to_dict() for item in self.items],
        }


class SeededJobIdFactory:
    """Hands out UUIDv7-shaped ids from a seeded generator.

    The 48-bit timestamp field counts up one millisecond per id from
    ``epoch_ms``; the 74 random bits come from :class:`Mulberry32`.
    """

    def __init__(self, seed: int = DEFAULT_SEED, epoch_ms: int = ID_EPOCH_MS) -> None:
        self._seed = seed
        self._epoch_ms = epoch_ms
        self.reset()

    def reset(self) -> None:
        self._rng = Mulberry32(self._seed)
        self._sequence = 0

    def __call__(self) -> str:
        timestamp = (self._epoch_ms + self._sequence) & 0xFFFF_FFFF_FFFF
        self._sequence += 1
        rand_a = self._rng.next_uint32() & 0xFFF
        rand_b = ((self._rng.next_uint32() & 0x3FFF_FFFF) << 32) | self._rng.next_uint32()
        value = (timestamp << 80) | (0x7 << 76) | (rand_a << 64) | (0b10 << 62) | rand_b
        return str(uuid.UUID(int=value))


def _normalize_job(job: Any) -> Any:
    if isinstance(job, BaseModel):
        return job.model_dump(mode="json", exclude_none=True)
    return job


def validate_bulk_job(job: Any) -> str | None:
    """Return the validation error for one batch item, or ``None`` if it may be enqueued."""
    job = _normalize_job(job)
    if not isinstance(job, Mapping):
        return "VALIDATION_ERROR: missing or invalid type"

    job_type = job.get("type")
    if not job_type or not isinstance(job_type, str):
        return "VALIDATION_ERROR: missing or invalid type"
    if not isinstance(job.get("args"), list):
        return "VALIDATION_ERROR: missing or invalid args"
    queue = job.get("queue")
    if isinstance(queue, str) and utf8_byte_length(queue) > MAX_NAME_BYTES:
        return f"VALIDATION_ERROR: queue name exceeds {MAX_NAME_BYTES} bytes"
    if utf8_byte_length(job_type) > MAX_NAME_BYTES:
        return f"VALIDATION_ERROR: type name exceeds {MAX_NAME_BYTES} bytes"
    return None


def _all_failed(count: int, error: str) -> BulkEnqueueResponse:
    return BulkEnqueueResponse.from_items(
        [BulkOperationResult(index=i, status="failed", error=error) for i in range(count)]
    )


class BulkEnqueueProcessor:
    """Admits batches and remembers answers by idempotency key.

    Each processor owns its cache; a fresh processor (or
    :meth:`clear_idempotency_cache`) gives an isolated run.
    """

    def __init__(self, seed: int = DEFAULT_SEED, id_factory: SeededJobIdFactory | None = None) -> None:
        self._id_factory = id_factory or SeededJobIdFactory(seed)
        self._cache: dict[str, tuple[str, BulkEnqueueResponse]] = {}

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: object) -> bool:
        return key in self._cache

    def simulate_bulk_enqueue(
        self,
        request: BulkEnqueueRequest | Mapping[str, Any],
    ) -> BulkEnqueueResponse:
        """Validate and admit a batch.  Reports failures per item; never raises for bad jobs."""
        if not isinstance(request, BulkEnqueueRequest):
            request = BulkEnqueueRequest.model_validate(dict(request))

        key = request.idempotency_key
        digest = request.content_hash() if key else None
        if key and key in self._cache:
            cached_digest, cached = self._cache[key]
            if cached_digest == digest:
                logger.debug("bulk_idempotency_hit", key=key)
                return cached
            logger.debug("bulk_idempotency_conflict", key=key)
            return _all_failed(
                len(request.jobs),
                "IDEMPOTENCY_CONFLICT: key already used with a different request",
            )

        if len(request.jobs) > MAX_BATCH_SIZE:
            return _all_failed(len(request.jobs), f"BATCH_TOO_LARGE: max {MAX_BATCH_SIZE} items")

        items: list[BulkOperationResult] = []
        for index, job in enumerate(request.jobs):
            error = validate_bulk_job(job)
            if error is None:
                items.append(BulkOperationResult(index=index, status="created", job_id=self._id_factory()))
            else:
                items.append(BulkOperationResult(index=index, status="failed", error=error))

        if request.atomicity == "atomic" and any(item.status == "failed" for item in items):
            logger.debug("bulk_atomic_rollback", total=len(items))
            items = [
                BulkOperationResult(
                    index=item.index,
                    status="failed",
                    error=f"ATOMIC_ROLLBACK: {item.error or ROLLBACK_REASON}",
                )
                for item in items
            ]

        response = BulkEnqueueResponse.from_items(items)
        if key and digest is not None:
            self._cache[key] = (digest, response)
        return response

    def clear_idempotency_cache(self) -> None:
        self._cache.clear()


__all__ = [
    "MAX_BATCH_SIZE",
    "BulkAtomicity",
    "BulkEnqueueRequest",
    "BulkOperationResult",
    "BulkEnqueueResponse",
    "SeededJobIdFactory",
    "BulkEnqueueProcessor",
    "validate_bulk_job",
]
