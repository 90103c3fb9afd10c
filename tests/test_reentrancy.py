"""Tests for the replay guard: dropped records, reentrant calls, threads,
and callback failures."""

import threading

import pytest

from palimpsest.history import Action, History, Kind, ReentrantCallError


class TestRecordDuringReplay:
    def test_record_from_apply_is_dropped(self, history, recorder):
        def apply(owner, kind, payload, action):
            history.record(None, Kind.TAGS, "echo", recorder.apply, recorder.release)

        history.record(None, Kind.TAGS, "a", apply)
        history.undo()

        undo, redo = history.snapshot()
        assert undo == ()
        assert [e.payload for e in redo] == ["a"]

    def test_dropped_payload_is_released(self, history, recorder):
        def apply(owner, kind, payload, action):
            history.record(None, Kind.TAGS, "echo", recorder.apply, recorder.release)

        history.record(None, Kind.TAGS, "a", apply)
        history.undo()
        assert recorder.released == ["echo"]

    def test_dropped_record_keeps_redo(self, history, recorder):
        def apply(owner, kind, payload, action):
            history.record(None, Kind.TAGS, "echo", recorder.apply)

        history.record(None, Kind.TAGS, "a", apply)
        history.undo()
        history.redo()
        history.undo()
        assert history.redo_depth == 1

    def test_record_from_other_thread_during_replay_is_dropped(self, history, recorder):
        def apply(owner, kind, payload, action):
            worker = threading.Thread(
                target=history.record,
                args=(None, Kind.TAGS, "other", recorder.apply, recorder.release),
            )
            worker.start()
            worker.join(timeout=5)
            assert not worker.is_alive()

        history.record(None, Kind.TAGS, "a", apply)
        history.undo()

        assert history.undo_depth == 0
        assert recorder.released == ["other"]

    def test_group_calls_from_apply_are_dropped(self, history):
        def apply(owner, kind, payload, action):
            history.begin_group(Kind.TAGS)
            history.end_group()

        history.record(None, Kind.TAGS, "a", apply)
        history.undo()

        assert history.group_depth == 0
        assert history.undo_depth == 0
        assert history.redo_depth == 1

    def test_record_works_again_after_replay(self, history, recorder):
        history.record(None, Kind.TAGS, "a", recorder.apply)
        history.undo()
        history.record(None, Kind.TAGS, "b", recorder.apply)
        assert history.undo_depth == 1


class TestReentrantCalls:
    def test_perform_from_apply_raises(self, history):
        def apply(owner, kind, payload, action):
            history.undo()

        history.record(None, Kind.TAGS, "a", apply)
        with pytest.raises(ReentrantCallError):
            history.undo()

        # the guard is released and the entry was not moved
        assert history.undo_depth == 1
        assert history.can_undo()

    def test_clear_from_apply_raises(self, history):
        def apply(owner, kind, payload, action):
            history.clear()

        history.record(None, Kind.TAGS, "a", apply)
        with pytest.raises(ReentrantCallError):
            history.undo()

    def test_iterate_from_apply_raises(self, history):
        def apply(owner, kind, payload, action):
            history.iterate(Kind.ALL, lambda *args: None)

        history.record(None, Kind.TAGS, "a", apply)
        with pytest.raises(ReentrantCallError):
            history.undo()

    def test_iterate_locked_from_apply(self, history, clock):
        seen = []

        def apply(owner, kind, payload, action):
            history.iterate_locked(Kind.ALL, lambda o, k, p: seen.append(p))

        history.record(None, Kind.TAGS, "a", apply)
        clock.now = 1.0
        history.record(None, Kind.TAGS, "b", apply)
        history.undo()

        assert "a" in seen

    def test_queries_from_apply(self, history):
        answers = []

        def apply(owner, kind, payload, action):
            answers.append(history.can_redo())

        history.record(None, Kind.TAGS, "a", apply)
        history.undo()
        assert answers == [False]

    def test_record_from_release_during_clear_raises(self, history, recorder):
        def release(payload):
            history.record(None, Kind.TAGS, "late", recorder.apply)

        history.record(None, Kind.TAGS, "a", recorder.apply, release)
        with pytest.raises(ReentrantCallError):
            history.clear()


class TestCallbackFailure:
    def test_failing_apply_propagates(self, history, clock, refreshes):
        applied = []

        def apply(owner, kind, payload, action):
            if payload == "bad":
                raise ValueError("boom")
            applied.append(payload)

        history.record(None, Kind.TAGS, "bad", apply)
        clock.now = 0.1
        history.record(None, Kind.TAGS, "good", apply)

        with pytest.raises(ValueError):
            history.undo()

        undo, redo = history.snapshot()
        assert applied == ["good"]
        assert [e.payload for e in undo] == ["bad"]
        assert [e.payload for e in redo] == ["good"]
        assert refreshes == []

    def test_history_usable_after_failure(self, history):
        calls = []

        def apply(owner, kind, payload, action):
            calls.append(action)
            if len(calls) == 1:
                raise ValueError("first call fails")

        history.record(None, Kind.TAGS, "a", apply)
        with pytest.raises(ValueError):
            history.undo()

        assert history.undo() == 1
        assert calls == [Action.UNDO, Action.UNDO]

    def test_failing_release_does_not_stop_redo_invalidation(self, history, recorder, clock):
        def release(payload):
            recorder.released.append(payload)
            history.record(None, Kind.TAGS, "late", recorder.apply)

        history.record(None, Kind.TAGS, "a", recorder.apply, release)
        clock.now = 1.0
        history.record(None, Kind.TAGS, "b", recorder.apply, release)
        history.undo()
        history.undo()

        with pytest.raises(ReentrantCallError):
            history.record(None, Kind.TAGS, "c", recorder.apply)

        assert recorder.released == ["a", "b"]
        undo, redo = history.snapshot()
        assert [e.payload for e in undo] == ["c"]
        assert redo == ()

    def test_failing_release_does_not_stop_clear(self, history, recorder, clock):
        def release(payload):
            recorder.released.append(payload)
            if payload == "a":
                raise ValueError("release failed")

        history.record(None, Kind.TAGS, "a", recorder.apply, release)
        clock.now = 1.0
        history.record(None, Kind.TAGS, "b", recorder.apply, release)

        with pytest.raises(ValueError, match="release failed"):
            history.clear()

        assert sorted(recorder.released) == ["a", "b"]
        assert history.undo_depth == 0

    def test_failing_release_does_not_stop_teardown(self, recorder):
        def release(payload):
            recorder.released.append(payload)
            raise ValueError("release failed")

        history = History()
        history.record(None, Kind.TAGS, "a", recorder.apply, release)
        history.record(None, Kind.RATINGS, "b", recorder.apply, release)

        with pytest.raises(ValueError):
            history.teardown()

        assert sorted(recorder.released) == ["a", "b"]
        history.teardown()


class TestThreads:
    def test_concurrent_records(self, recorder):
        history = History()
        barrier = threading.Barrier(8)

        def worker(n):
            barrier.wait()
            for i in range(50):
                history.record(n, Kind.TAGS, (n, i), recorder.apply)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert history.undo_depth == 400
        history.teardown()

    def test_concurrent_undo_and_record(self, recorder):
        history = History(coalesce_window=0.0)
        for i in range(100):
            history.record(None, Kind.TAGS, i, recorder.apply)

        def undoer():
            for _ in range(50):
                history.undo()

        def recorder_thread():
            for i in range(50):
                history.record(None, Kind.RATINGS, f"r{i}", recorder.apply)

        threads = [threading.Thread(target=undoer), threading.Thread(target=recorder_thread)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        undo, redo = history.snapshot()
        # no entry sits in both stacks or twice in one
        entries = [e for e in undo + redo]
        assert len(entries) == len(set(map(id, entries)))
        assert history.can_undo()
        history.teardown()

    def test_suppression_is_taken_by_one_thread(self, recorder):
        history = History()
        history.disable_next_record()
        barrier = threading.Barrier(8)

        def worker(n):
            barrier.wait()
            history.record(n, Kind.TAGS, n, recorder.apply, recorder.release)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert history.undo_depth == 7
        assert len(recorder.released) == 1
        history.teardown()
