"""
Unit tests for thread_memory/ops/worker.py

Tests background job states for summarization triggers.
"""
from datetime import datetime, timedelta, timezone

import pytest

from thread_memory.ops.worker import PairTrigger, SummarizationWorker
from thread_memory.summary.errors import ExtractionFailure


@pytest.fixture
def worker(orchestrator):
    w = SummarizationWorker(orchestrator, max_workers=2)
    yield w
    w.shutdown(wait=True)


def test_job_succeeds(worker, seed_thread, summaries):
    user_id, assistant_id = seed_thread(1)

    job_id = worker.submit(PairTrigger("t1", user_id, assistant_id))
    job = worker.wait(job_id, timeout=5)

    assert job.state == "succeeded"
    assert job.result.status == "created"
    assert job.started_at is not None
    assert job.finished_at is not None
    assert summaries.get("t1").version == 1


def test_failed_summarization_marks_job_failed(worker, extractor, seed_thread):
    extractor.push(ExtractionFailure("bad output"))
    job_id = worker.submit(PairTrigger("t1", *seed_thread(1)))

    job = worker.wait(job_id, timeout=5)

    assert job.state == "failed"
    assert job.result.error_code == "extraction_failed"
    assert "bad output" in job.error


def test_crash_is_captured(worker, orchestrator, monkeypatch, seed_thread):
    def explode(*args):
        raise RuntimeError("boom")

    monkeypatch.setattr(orchestrator, "process_pair", explode)
    job_id = worker.submit(PairTrigger("t1", *seed_thread(1)))

    job = worker.wait(job_id, timeout=5)

    assert job.state == "failed"
    assert job.error == "boom"
    assert job.result is None


def test_duplicate_trigger_is_harmless(worker, extractor, seed_thread, summaries):
    trigger = PairTrigger("t1", *seed_thread(1))

    first = worker.wait(worker.submit(trigger), timeout=5)
    second = worker.wait(worker.submit(trigger), timeout=5)

    assert first.result.status == "created"
    assert second.result.status == "duplicate"
    assert len(extractor.calls) == 1
    assert summaries.get("t1").version == 1


def test_unknown_job(worker):
    assert worker.get("nope") is None
    assert worker.wait("nope") is None


def test_list_and_to_dict(worker, seed_thread):
    job_id = worker.submit(PairTrigger("t1", *seed_thread(1)))
    worker.wait(job_id, timeout=5)

    jobs = worker.list(state="succeeded")
    assert [j.id for j in jobs] == [job_id]
    assert worker.list(state="failed") == []

    data = jobs[0].to_dict()
    assert data["trigger"] == {"thread_id": "t1", "user_msg_id": "u1", "assistant_msg_id": "a1"}
    assert data["result"]["status"] == "created"


def test_finished_jobs_release_futures(worker, seed_thread):
    job_ids = [worker.submit(PairTrigger("t1", *seed_thread(n))) for n in range(1, 6)]
    for job_id in job_ids:
        worker.wait(job_id, timeout=5)

    assert worker._futures == {}
    assert all(worker.get(job_id).finished_at for job_id in job_ids)
    # Waiting on a finished job returns immediately
    assert worker.wait(job_ids[0], timeout=0).state == "succeeded"


def test_cleanup_old_jobs_by_age(worker, seed_thread):
    old_id = worker.submit(PairTrigger("t1", *seed_thread(1)))
    new_id = worker.submit(PairTrigger("t1", *seed_thread(2)))
    worker.wait(old_id, timeout=5)
    worker.wait(new_id, timeout=5)

    worker.get(old_id).finished_at = (datetime.now(timezone.utc) - timedelta(hours=48)).isoformat()

    assert worker.cleanup_old_jobs(max_age_hours=24) == 1
    assert worker.get(old_id) is None
    assert worker.get(new_id) is not None


def test_cleanup_old_jobs_keeps_most_recent(worker, seed_thread):
    job_ids = []
    for n in range(1, 6):
        job_id = worker.submit(PairTrigger("t1", *seed_thread(n)))
        worker.wait(job_id, timeout=5)
        job_ids.append(job_id)

    assert worker.cleanup_old_jobs(max_age_hours=24, max_finished=2) == 3
    assert sorted(j.id for j in worker.list()) == sorted(job_ids[-2:])


def test_submit_prunes_finished_jobs(orchestrator, seed_thread):
    bounded = SummarizationWorker(orchestrator, max_workers=1, max_finished_jobs=2)
    try:
        for n in range(1, 6):
            bounded.wait(bounded.submit(PairTrigger("t1", *seed_thread(n))), timeout=5)

        # Two finished jobs kept, plus the one just submitted
        assert len(bounded.jobs) == 3
    finally:
        bounded.shutdown(wait=True)
