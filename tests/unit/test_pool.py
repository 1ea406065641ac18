"""Capacity accounting, resize rules and write-through of the pool tracker."""
from __future__ import annotations

import random
import threading

import pytest

from config.settings import Settings
from services.pool import POOL_COLLECTION, POOL_DOC_ID, ResourcePoolTracker
from storage.document_store import SqliteDocumentStore, WriteOp
from storage.errors import TransientStoreError
from storage.gateway import DocumentGateway
from storage.ttl_cache import TtlCache


class FlakyStore:
    def __init__(self, inner):
        self.inner = inner
        self.fail_writes = False

    def get(self, collection, doc_id):
        return self.inner.get(collection, doc_id)

    def query(self, *args, **kwargs):
        return self.inner.query(*args, **kwargs)

    def batch_write(self, ops):
        if self.fail_writes:
            raise TransientStoreError("database is locked")
        return self.inner.batch_write(ops)


@pytest.fixture()
def store(tmp_db):
    return FlakyStore(SqliteDocumentStore(tmp_db))


@pytest.fixture()
def gateway(store):
    return DocumentGateway(store, TtlCache(default_ttl=60))


@pytest.fixture()
def pool(gateway):
    return ResourcePoolTracker(gateway, Settings(_env_file=None))


def _acquire(pool, n):
    for _ in range(n):
        assert pool.acquire() is True


def _balanced(metrics):
    return metrics.active + metrics.available == metrics.total and metrics.active >= 0 and metrics.available >= 0


def test_defaults(pool):
    metrics = pool.snapshot()
    assert (metrics.active, metrics.available, metrics.total) == (0, 100, 100)


def test_shrink_below_active_is_rejected(pool):
    _acquire(pool, 50)
    before = pool.snapshot()

    outcome = pool.resize("shrink", 60)

    assert outcome.status == "rejected"
    assert outcome.reason
    assert outcome.previous_metrics == before
    assert outcome.new_metrics == before
    assert pool.snapshot() == before


def test_expand_adds_capacity(pool):
    _acquire(pool, 10)

    outcome = pool.resize("expand", 20)

    assert outcome.status == "completed"
    assert outcome.previous_metrics.total == 100
    assert (outcome.new_metrics.total, outcome.new_metrics.available) == (120, 110)


def test_resize_bounds_and_defaults(pool):
    assert pool.resize("expand", 500).new_metrics.total == 200
    assert pool.resize("shrink", 190).new_metrics.total == 50
    assert pool.resize("expand").new_metrics.total == 60
    assert pool.resize("shrink", -1).status == "rejected"
    assert pool.resize("explode", 1).status == "rejected"

    _acquire(pool, 3)
    reset = pool.resize("reset")
    assert reset.status == "completed"
    assert (reset.new_metrics.active, reset.new_metrics.total) == (0, 100)


def test_acquire_exhaustion_and_release(pool):
    pool.resize("shrink", 50)
    _acquire(pool, 50)

    assert pool.acquire() is False
    assert pool.snapshot().available == 0

    metrics = pool.release()
    assert (metrics.active, metrics.available) == (49, 1)


def test_release_never_goes_negative(pool):
    metrics = pool.release()
    assert (metrics.active, metrics.available, metrics.total) == (0, 100, 100)


def test_invariant_across_random_sequences(pool):
    rng = random.Random(7)
    for _ in range(300):
        choice = rng.choice(["acquire", "release", "expand", "shrink", "reset"])
        if choice == "acquire":
            pool.acquire()
        elif choice == "release":
            pool.release()
        else:
            pool.resize(choice, rng.randint(0, 80))
        assert _balanced(pool.snapshot())


def test_concurrent_acquire_release_loses_no_updates(pool):
    def worker():
        for _ in range(20):
            assert pool.acquire()
        for _ in range(10):
            pool.release()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    metrics = pool.snapshot()
    assert (metrics.active, metrics.available) == (40, 60)


def test_mutations_are_written_through(pool, gateway):
    _acquire(pool, 3)
    stored = gateway.get(POOL_COLLECTION, POOL_DOC_ID)
    assert (stored["active"], stored["available"], stored["total"]) == (3, 97, 100)
    assert pool.persisted()["active"] == 3


def test_failed_persist_rolls_back_memory(pool, store):
    _acquire(pool, 2)
    store.fail_writes = True

    with pytest.raises(TransientStoreError):
        pool.acquire()
    with pytest.raises(TransientStoreError):
        pool.resize("expand", 10)

    metrics = pool.snapshot()
    assert (metrics.active, metrics.total) == (2, 100)


def test_observe_latency_running_mean(pool):
    pool.observe_latency(10)
    assert pool.observe_latency(21).avg_latency_ms == 16
    assert pool.resize("reset").new_metrics.avg_latency_ms == 0


def test_restore_adopts_persisted_metrics(gateway):
    gateway.batch_write(
        [
            WriteOp(
                type="set",
                collection=POOL_COLLECTION,
                doc_id=POOL_DOC_ID,
                data={"active": 5, "available": 115, "total": 120, "avg_latency_ms": 12},
            )
        ]
    )
    pool = ResourcePoolTracker(gateway, Settings(_env_file=None))
    metrics = pool.restore()
    assert (metrics.active, metrics.total) == (5, 120)


def test_restore_ignores_inconsistent_document(gateway):
    gateway.batch_write(
        [
            WriteOp(
                type="set",
                collection=POOL_COLLECTION,
                doc_id=POOL_DOC_ID,
                data={"active": 5, "available": 5, "total": 120},
            )
        ]
    )
    pool = ResourcePoolTracker(gateway, Settings(_env_file=None))
    assert pool.restore().total == 100


def test_release_frees_slot_even_if_persist_fails(pool, store, gateway):
    _acquire(pool, 2)
    store.fail_writes = True

    assert pool.release().active == 1
    assert gateway.get(POOL_COLLECTION, POOL_DOC_ID)["active"] == 2

    store.fail_writes = False
    pool.observe_latency(5)
    assert gateway.get(POOL_COLLECTION, POOL_DOC_ID)["active"] == 1
