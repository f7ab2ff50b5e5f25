import pytest

from snippet_harness.contracts import BatchStateError, RunBatch, RunResult
from snippet_harness.testkit import make_snippet


def _passed(snippet_id, retry_count=0):
    return RunResult(snippet_id, "python", "pass", exit_code=0, retry_count=retry_count)


def _failed(snippet_id, retry_count=0):
    return RunResult(snippet_id, "python", "fail", exit_code=1, retry_count=retry_count)


def test_full_lifecycle_reaches_reported():
    batch = RunBatch.start([make_snippet("python/a/x")])

    batch.mark_queued("python/a/x")
    batch.mark_running("python/a/x")
    batch.resolve(_passed("python/a/x"))
    results = batch.finalize()

    assert [result.status for result in results] == ["pass"]
    assert batch.state("python/a/x") == "reported"
    assert batch.finalized


def test_skipped_resolves_straight_from_discovered():
    batch = RunBatch.start([make_snippet("python/a/x")])

    batch.resolve(RunResult.skipped("python/a/x", "python", "ignored"))

    assert batch.state("python/a/x") == "skipped"
    assert batch.unresolved == []


def test_pass_cannot_skip_running():
    batch = RunBatch.start([make_snippet("python/a/x")])

    with pytest.raises(BatchStateError, match="cannot resolve pass from discovered"):
        batch.resolve(_passed("python/a/x"))


def test_running_snippet_cannot_be_skipped():
    batch = RunBatch.start([make_snippet("python/a/x")])
    batch.mark_queued("python/a/x")
    batch.mark_running("python/a/x")

    with pytest.raises(BatchStateError):
        batch.resolve(RunResult.skipped("python/a/x", "python", "late"))


def test_terminal_result_is_final():
    batch = RunBatch.start([make_snippet("python/a/x")])
    batch.mark_queued("python/a/x")
    batch.mark_running("python/a/x")
    batch.resolve(_failed("python/a/x"))

    with pytest.raises(BatchStateError):
        batch.resolve(_passed("python/a/x"))


def test_revisions_are_bounded_by_retry_limit():
    batch = RunBatch.start([make_snippet("python/a/x")], max_revisions=3)
    batch.mark_queued("python/a/x")
    batch.mark_running("python/a/x")

    batch.record_revision(_failed("python/a/x", 0))
    batch.record_revision(_failed("python/a/x", 1))
    with pytest.raises(BatchStateError, match="retry bound"):
        batch.record_revision(_failed("python/a/x", 2))

    batch.resolve(_passed("python/a/x", 2))
    assert [result.status for result in batch.revisions("python/a/x")] == ["fail", "fail", "pass"]


def test_finalize_requires_every_snippet_resolved():
    batch = RunBatch.start([make_snippet("python/a/x"), make_snippet("python/a/y")])
    batch.resolve(RunResult.skipped("python/a/x", "python", "ignored"))

    with pytest.raises(BatchStateError, match="python/a/y"):
        batch.finalize()


def test_finalized_batch_rejects_writes():
    batch = RunBatch.start([make_snippet("python/a/x")])
    batch.resolve(RunResult.skipped("python/a/x", "python", "ignored"))
    batch.finalize()

    with pytest.raises(BatchStateError, match="already finalized"):
        batch.mark_queued("python/a/x")


def test_duplicate_ids_are_rejected():
    with pytest.raises(BatchStateError, match="Duplicate snippet id"):
        RunBatch.start([make_snippet("python/a/x"), make_snippet("python/a/x")])


def test_counts_by_language_and_status():
    batch = RunBatch.start(
        [
            make_snippet("go/a/x", language="go"),
            make_snippet("python/a/x"),
            make_snippet("rust/a/x", language="rust"),
        ]
    )
    batch.resolve(RunResult.toolchain_error("go/a/x", "go", "go not found"))
    batch.resolve(RunResult.skipped("rust/a/x", "rust", "unsupported language"))
    batch.mark_queued("python/a/x")
    batch.mark_running("python/a/x")
    batch.resolve(_passed("python/a/x"))

    counts = batch.counts()

    assert counts.total == 3
    assert counts.by_status == {
        "pass": 1,
        "fail": 0,
        "toolchain_error": 1,
        "timeout": 0,
        "skipped": 1,
    }
    assert list(counts.by_language) == ["go", "python", "rust"]
    assert counts.by_language["rust"]["skipped"] == 1
