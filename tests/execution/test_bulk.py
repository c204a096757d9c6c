"""Tests for bulk enqueue."""

import uuid

import pytest

from ojs_lifecycle.execution.bulk import (
    MAX_BATCH_SIZE,
    BulkEnqueueProcessor,
    BulkEnqueueRequest,
    SeededJobIdFactory,
    validate_bulk_job,
)
from ojs_lifecycle.execution.jobs import DEFAULT_JOB

VALID = {"type": "email.send", "args": ["a@b.c"]}
INVALID = {"args": []}


class TestValidateBulkJob:
    """Tests for validate_bulk_job."""

    def test_valid(self):
        assert validate_bulk_job(VALID) is None

    def test_envelope_model_is_valid(self):
        assert validate_bulk_job(DEFAULT_JOB) is None

    @pytest.mark.parametrize(
        ("job", "error"),
        [
            ({"args": []}, "VALIDATION_ERROR: missing or invalid type"),
            ({"type": 5, "args": []}, "VALIDATION_ERROR: missing or invalid type"),
            ("email.send", "VALIDATION_ERROR: missing or invalid type"),
            ({"type": "a"}, "VALIDATION_ERROR: missing or invalid args"),
            ({"type": "a", "args": "x"}, "VALIDATION_ERROR: missing or invalid args"),
            ({"type": "a", "args": [], "queue": "q" * 256}, "VALIDATION_ERROR: queue name exceeds 255 bytes"),
            ({"type": "t" * 256, "args": []}, "VALIDATION_ERROR: type name exceeds 255 bytes"),
        ],
    )
    def test_errors(self, job, error):
        assert validate_bulk_job(job) == error

    def test_multibyte_names_count_bytes(self):
        assert validate_bulk_job({"type": "a", "args": [], "queue": "é" * 128}) is not None
        assert validate_bulk_job({"type": "a", "args": [], "queue": "é" * 127}) is None

    def test_lone_surrogate_in_type(self):
        """A lone surrogate counts as three bytes instead of failing to encode."""
        assert validate_bulk_job({"type": "a\ud800", "args": []}) is None
        assert validate_bulk_job({"type": "t" * 253 + "\ud800", "args": []}) is not None


class TestPartial:
    """Tests for partial batches."""

    def test_valid_items_go_through(self, bulk_processor):
        response = bulk_processor.simulate_bulk_enqueue({"jobs": [VALID, INVALID, VALID]})
        assert (response.total, response.succeeded, response.failed) == (3, 2, 1)
        assert [item.status for item in response.items] == ["created", "failed", "created"]
        assert response.items[1].job_id is None
        assert response.items[1].error == "VALIDATION_ERROR: missing or invalid type"

    def test_empty_batch(self, bulk_processor):
        response = bulk_processor.simulate_bulk_enqueue(BulkEnqueueRequest())
        assert response.to_dict() == {"total": 0, "succeeded": 0, "failed": 0, "items": []}


class TestAtomic:
    """Tests for atomic batches."""

    def test_one_failure_rolls_back_everything(self, bulk_processor):
        response = bulk_processor.simulate_bulk_enqueue({"atomicity": "atomic", "jobs": [VALID, INVALID]})
        assert (response.total, response.succeeded, response.failed) == (2, 0, 2)
        assert all(item.job_id is None for item in response.items)
        assert response.items[0].error == "ATOMIC_ROLLBACK: batch rolled back due to other failures"
        assert response.items[1].error == "ATOMIC_ROLLBACK: VALIDATION_ERROR: missing or invalid type"

    def test_all_valid_commits(self, bulk_processor):
        response = bulk_processor.simulate_bulk_enqueue({"atomicity": "atomic", "jobs": [VALID, VALID]})
        assert response.succeeded == 2
        assert all(item.job_id for item in response.items)


class TestBatchSize:
    """Tests for the batch size limit."""

    def test_over_limit_fails_every_item(self, bulk_processor):
        response = bulk_processor.simulate_bulk_enqueue({"jobs": [VALID] * (MAX_BATCH_SIZE + 1)})
        assert response.total == MAX_BATCH_SIZE + 1
        assert response.failed == MAX_BATCH_SIZE + 1
        assert {item.error for item in response.items} == {"BATCH_TOO_LARGE: max 1000 items"}

    def test_at_limit_is_accepted(self, bulk_processor):
        response = bulk_processor.simulate_bulk_enqueue({"jobs": [VALID] * MAX_BATCH_SIZE})
        assert response.succeeded == MAX_BATCH_SIZE


class TestIdempotency:
    """Tests for idempotency keys."""

    def test_replay_returns_cached_response(self, bulk_processor):
        request = {"idempotencyKey": "batch-1", "jobs": [VALID, VALID]}
        first = bulk_processor.simulate_bulk_enqueue(request)
        second = bulk_processor.simulate_bulk_enqueue(request)
        assert second.to_dict() == first.to_dict()
        assert second is first
        assert "batch-1" in bulk_processor
        assert len(bulk_processor) == 1

    def test_snake_case_key_accepted(self, bulk_processor):
        bulk_processor.simulate_bulk_enqueue(BulkEnqueueRequest(idempotency_key="k", jobs=[VALID]))
        assert "k" in bulk_processor

    def test_conflicting_reuse(self, bulk_processor):
        bulk_processor.simulate_bulk_enqueue({"idempotencyKey": "k", "jobs": [VALID]})
        response = bulk_processor.simulate_bulk_enqueue({"idempotencyKey": "k", "jobs": [VALID, VALID]})
        assert response.failed == 2
        assert {item.error for item in response.items} == {
            "IDEMPOTENCY_CONFLICT: key already used with a different request"
        }
        assert len(bulk_processor) == 1

    def test_no_key_is_never_cached(self, bulk_processor):
        first = bulk_processor.simulate_bulk_enqueue({"jobs": [VALID]})
        second = bulk_processor.simulate_bulk_enqueue({"jobs": [VALID]})
        assert first.items[0].job_id != second.items[0].job_id
        assert len(bulk_processor) == 0

    def test_clear_cache(self, bulk_processor):
        bulk_processor.simulate_bulk_enqueue({"idempotencyKey": "k", "jobs": [VALID]})
        bulk_processor.clear_idempotency_cache()
        response = bulk_processor.simulate_bulk_enqueue({"idempotencyKey": "k", "jobs": [VALID, VALID]})
        assert response.succeeded == 2

    def test_processors_are_isolated(self):
        BulkEnqueueProcessor().simulate_bulk_enqueue({"idempotencyKey": "k", "jobs": [VALID]})
        assert "k" not in BulkEnqueueProcessor()

    def test_surrogate_type_is_admitted(self, bulk_processor):
        response = bulk_processor.simulate_bulk_enqueue({"jobs": [{"type": "a\ud800", "args": []}]})
        assert response.items[0].status == "created"

    def test_mixed_key_job_is_cached(self, bulk_processor):
        """Jobs whose keys mix ints and strings still hash for the cache."""
        request = {"idempotencyKey": "mixed", "jobs": [{"type": "ok", "args": [], 1: "x"}]}
        first = bulk_processor.simulate_bulk_enqueue(request)
        second = bulk_processor.simulate_bulk_enqueue(request)
        assert first.succeeded == 1
        assert second is first


class TestJobIds:
    """Tests for SeededJobIdFactory."""

    def test_uuid7_shape(self):
        factory = SeededJobIdFactory(seed=1)
        value = uuid.UUID(factory())
        assert value.version == 7
        assert value.variant == uuid.RFC_4122

    def test_reproducible_for_seed(self):
        factory_a, factory_b = SeededJobIdFactory(seed=9), SeededJobIdFactory(seed=9)
        assert [factory_a() for _ in range(5)] == [factory_b() for _ in range(5)]

    def test_ordered_and_unique(self):
        factory = SeededJobIdFactory()
        ids = [factory() for _ in range(50)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 50

    def test_reset_replays(self):
        factory = SeededJobIdFactory(seed=3)
        first = factory()
        factory.reset()
        assert factory() == first

    def test_processors_with_same_seed_agree(self):
        request = {"jobs": [VALID, VALID, VALID]}
        a = BulkEnqueueProcessor(seed=5).simulate_bulk_enqueue(request)
        b = BulkEnqueueProcessor(seed=5).simulate_bulk_enqueue(request)
        assert [i.job_id for i in a.items] == [i.job_id for i in b.items]
