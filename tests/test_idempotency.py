from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from jobtrack.ingestion.idempotency import AdmitResult, IdempotencyGuard, InMemoryNotificationLog


def test_second_admit_is_duplicate() -> None:
    guard = IdempotencyGuard()

    assert guard.admit("sub-1", "5695685") is AdmitResult.ADMITTED
    assert guard.admit("sub-1", "5695685") is AdmitResult.DUPLICATE


def test_keyed_on_submission_not_form() -> None:
    guard = IdempotencyGuard()

    assert guard.admit("sub-1", "5695685") is AdmitResult.ADMITTED
    assert guard.admit("sub-2", "5695685") is AdmitResult.ADMITTED


def test_record_is_kept_after_admission() -> None:
    log = InMemoryNotificationLog()
    guard = IdempotencyGuard(log)

    guard.admit("sub-1", "5695685")

    record = log.get("sub-1")
    assert record is not None
    assert record.form_id == "5695685"
    assert len(log) == 1


def test_concurrent_admits_yield_exactly_one_admission() -> None:
    guard = IdempotencyGuard()

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(lambda _: guard.admit("sub-1", "5695685"), range(64)))

    assert results.count(AdmitResult.ADMITTED) == 1
    assert results.count(AdmitResult.DUPLICATE) == 63
