"""Tests for the publish engine, tree walker and URL mapping."""
import logging
import threading
import time
from concurrent.futures import Future
from pathlib import Path
from unittest.mock import Mock

import httpx
import pytest

from mirror_publisher.models import Credentials, PublishConfig, UploadResult, UploadTask
from mirror_publisher.publisher import EngineState, PublishEngine, TreeWalker, append_url_path_segment
from mirror_publisher.publisher import core
from mirror_publisher.publisher.pool import create_worker_pool, drain, when_all_done
from mirror_publisher.services.upload_client import HTTPUploadClient


class ImmediatePool:
    """Pool double that runs each task on submit and remembers the order."""

    def __init__(self, size=1):
        self.size = size
        self.submitted = []
        self.shutdown_calls = []

    def submit(self, fn, *args, **kwargs):
        self.submitted.append(args[0])
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future

    def shutdown(self, wait=True, *, cancel_futures=False):
        self.shutdown_calls.append(wait)


def ok_client():
    client = Mock()
    client.upload = Mock(side_effect=lambda task: UploadResult.ok(task.target_url, 201))
    return client


def build_tree(root: Path, files):
    for rel in files:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(rel.encode())


class TestAppendUrlPathSegment:
    def test_inserts_missing_separator(self):
        assert append_url_path_segment("https://repo/x", "org") == "https://repo/x/org/"

    def test_keeps_existing_separator(self):
        assert append_url_path_segment("https://repo/x/", "org") == "https://repo/x/org/"

    @pytest.mark.parametrize("base", ["https://repo/x", "https://repo/x/"])
    def test_nested_append_ends_with_single_separator(self, base):
        result = append_url_path_segment(append_url_path_segment(base, "a"), "b")
        assert result == "https://repo/x/a/b/"
        assert not result.endswith("//")

    def test_segment_is_not_escaped(self):
        assert append_url_path_segment("https://repo/", "1.0 beta") == "https://repo/1.0 beta/"


class TestTreeWalker:
    def test_one_task_per_file_with_extended_locations(self, tmp_path):
        build_tree(tmp_path, [
            "a.jar",
            "org/example/lib/1.0/lib-1.0.jar",
            "org/example/lib/1.0/lib-1.0.pom",
            "org/example/lib/maven-metadata.xml",
        ])
        pool = ImmediatePool()
        client = ok_client()

        TreeWalker(client).publish_directory(pool, "https://repo/x", tmp_path)

        urls = sorted(task.target_url for task in pool.submitted)
        assert urls == [
            "https://repo/x/a.jar",
            "https://repo/x/org/example/lib/1.0/lib-1.0.jar",
            "https://repo/x/org/example/lib/1.0/lib-1.0.pom",
            "https://repo/x/org/example/lib/maven-metadata.xml",
        ]
        assert client.upload.call_count == 4

    def test_one_walk_per_directory(self, tmp_path):
        build_tree(tmp_path, ["a/one.jar", "a/b/two.jar", "c/three.jar"])
        (tmp_path / "empty").mkdir()
        walker = TreeWalker(ok_client())
        calls = []
        original = walker.publish_directory

        def spy(pool, repository_url, mirror_path):
            calls.append((repository_url, mirror_path.relative_to(tmp_path).as_posix()))
            return original(pool, repository_url, mirror_path)

        walker.publish_directory = spy
        spy(ImmediatePool(), "https://repo/x/", tmp_path)

        assert sorted(calls) == [
            ("https://repo/x/", "."),
            ("https://repo/x/a/", "a"),
            ("https://repo/x/a/b/", "a/b"),
            ("https://repo/x/c/", "c"),
            ("https://repo/x/empty/", "empty"),
        ]

    def test_files_of_directory_submitted_before_subdirectory(self, tmp_path):
        build_tree(tmp_path, ["a.jar", "b.jar", "sub/c.jar"])
        pool = ImmediatePool()

        TreeWalker(ok_client()).publish_directory(pool, "https://repo/x", tmp_path)

        urls = [task.target_url for task in pool.submitted]
        assert set(urls[:2]) == {"https://repo/x/a.jar", "https://repo/x/b.jar"}
        assert urls[2] == "https://repo/x/sub/c.jar"

    def test_credentials_travel_with_each_task(self, tmp_path):
        build_tree(tmp_path, ["a.jar", "sub/c.jar"])
        creds = Credentials("deployer", "secret")
        pool = ImmediatePool()

        TreeWalker(ok_client(), creds).publish_directory(pool, "https://repo/x", tmp_path)

        assert all(task.credentials == creds for task in pool.submitted)

    def test_on_submit_receives_task_and_future(self, tmp_path):
        build_tree(tmp_path, ["a.jar"])
        seen = []

        TreeWalker(ok_client(), on_submit=lambda t, f: seen.append((t, f))).publish_directory(
            ImmediatePool(), "https://repo/x/", tmp_path
        )

        task, future = seen[0]
        assert isinstance(task, UploadTask)
        assert future.result().target_url == "https://repo/x/a.jar"

    def test_unlistable_directory_propagates(self, tmp_path):
        pool = ImmediatePool()
        with pytest.raises(OSError):
            TreeWalker(ok_client()).publish_directory(pool, "https://repo/x", tmp_path / "missing")
        assert pool.submitted == []


class TestPool:
    def test_pool_size_must_be_positive(self):
        with pytest.raises(ValueError):
            create_worker_pool(0)

    def test_drain_reports_unfinished(self):
        pool = create_worker_pool(1)
        release = threading.Event()
        futures = [pool.submit(release.wait) for _ in range(2)]
        try:
            done, not_done = drain(pool, futures, timeout=0.05)
            assert (len(done), len(not_done)) == (0, 2)
        finally:
            release.set()
        done, not_done = drain(pool, futures, timeout=5)
        assert (len(done), len(not_done)) == (2, 0)

    def test_when_all_done_waits_for_last_future(self):
        futures = [Future(), Future()]
        calls = []

        when_all_done(futures, lambda: calls.append("done"))
        futures[0].set_result(None)
        assert calls == []
        futures[1].set_exception(RuntimeError("boom"))
        assert calls == ["done"]

    def test_when_all_done_without_futures(self):
        calls = []
        when_all_done([], lambda: calls.append("done"))
        assert calls == ["done"]


class TestPublishEngine:
    def _config(self, mirror, **kwargs):
        return PublishConfig(root_url="https://repo/x", mirror_path=str(mirror), **kwargs)

    def test_scenario_submission_order_and_done(self, tmp_path):
        build_tree(tmp_path, ["a.jar", "b.jar", "sub/c.jar"])
        pools = []

        def factory(size):
            pools.append(ImmediatePool(size))
            return pools[-1]

        engine = PublishEngine(self._config(tmp_path, publisher_threads=4), ok_client(), factory)
        assert engine.state == EngineState.IDLE
        summary = engine.publish()

        assert len(pools) == 1
        assert pools[0].size == 4
        assert pools[0].shutdown_calls == [False]
        urls = [task.target_url for task in pools[0].submitted]
        assert set(urls[:2]) == {"https://repo/x/a.jar", "https://repo/x/b.jar"}
        assert urls[2] == "https://repo/x/sub/c.jar"
        assert engine.state == EngineState.DONE
        assert summary.submitted == 3
        assert summary.succeeded == 3

    def test_mirror_path_is_normalized(self, tmp_path):
        build_tree(tmp_path, ["sub/c.jar"])
        pool = ImmediatePool()
        mirror = f"{tmp_path}/sub/../sub/"

        PublishEngine(self._config(mirror), ok_client(), lambda size: pool).publish()

        assert pool.submitted[0].file_path == tmp_path / "sub" / "c.jar"

    def test_already_uploaded_keeps_run_going(self, tmp_path):
        build_tree(tmp_path, ["a.jar", "b.jar"])
        client = Mock()
        client.upload = Mock(side_effect=[
            UploadResult.already_exists("https://repo/x/first"),
            UploadResult.ok("https://repo/x/second", 201),
        ])
        engine = PublishEngine(self._config(tmp_path), client, lambda size: ImmediatePool(size))

        summary = engine.publish()

        assert engine.state == EngineState.DONE
        assert summary.already_existed == 1
        assert summary.succeeded == 1
        assert summary.failed == 0

    def test_unexpected_task_error_counts_as_failed(self, tmp_path, caplog):
        build_tree(tmp_path, ["a.jar", "b.jar"])
        client = Mock()
        client.upload = Mock(side_effect=[RuntimeError("bug"), UploadResult.ok("u", 200)])

        summary = PublishEngine(self._config(tmp_path), client, lambda size: ImmediatePool()).publish()

        assert summary.failed == 1
        assert summary.succeeded == 1
        assert any("Unexpected error" in r.getMessage() for r in caplog.records)

    def test_unreadable_root_propagates_without_tasks(self, tmp_path):
        pool = ImmediatePool()
        engine = PublishEngine(self._config(tmp_path / "missing"), ok_client(), lambda size: pool)

        with pytest.raises(OSError):
            engine.publish()

        assert pool.submitted == []
        assert pool.shutdown_calls == [False]
        assert engine.state == EngineState.DONE

    def test_unreadable_subtree_keeps_earlier_uploads(self, tmp_path, monkeypatch):
        build_tree(tmp_path, ["a.jar", "locked/c.jar"])
        original_iterdir = Path.iterdir

        def iterdir(self):
            if self.name == "locked":
                raise PermissionError(13, "Permission denied", str(self))
            return original_iterdir(self)

        monkeypatch.setattr(Path, "iterdir", iterdir)
        client = ok_client()
        pool = ImmediatePool()

        with pytest.raises(PermissionError):
            PublishEngine(self._config(tmp_path), client, lambda size: pool).publish()

        assert [task.target_url for task in pool.submitted] == ["https://repo/x/a.jar"]
        client.upload.assert_called_once()

    def test_publish_only_once(self, tmp_path):
        engine = PublishEngine(self._config(tmp_path), ok_client(), lambda size: ImmediatePool())
        engine.publish()
        with pytest.raises(RuntimeError):
            engine.publish()

    def test_pool_bounds_concurrent_uploads(self, tmp_path):
        build_tree(tmp_path, [f"d{i % 3}/file{i}.jar" for i in range(12)])
        lock = threading.Lock()
        state = {"running": 0, "peak": 0, "calls": 0}

        def upload(task):
            with lock:
                state["running"] += 1
                state["calls"] += 1
                state["peak"] = max(state["peak"], state["running"])
            time.sleep(0.02)
            with lock:
                state["running"] -= 1
            return UploadResult.ok(task.target_url, 201)

        client = Mock()
        client.upload = Mock(side_effect=upload)

        summary = PublishEngine(self._config(tmp_path, publisher_threads=3), client).publish()

        assert state["calls"] == 12
        assert 1 <= state["peak"] <= 3
        assert summary.succeeded == 12
        assert summary.unfinished == 0

    def test_drain_timeout_reports_unfinished(self, tmp_path, caplog):
        build_tree(tmp_path, ["a.jar", "b.jar"])
        release = threading.Event()

        def upload(task):
            release.wait(5)
            return UploadResult.ok(task.target_url, 201)

        client = Mock()
        client.upload = Mock(side_effect=upload)
        engine = PublishEngine(
            self._config(tmp_path, publisher_threads=1, drain_timeout=0.05), client
        )
        try:
            summary = engine.publish()
        finally:
            release.set()

        assert engine.state == EngineState.DONE
        assert summary.unfinished == 2
        assert any("unfinished" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)

    def test_rerun_against_populated_remote_has_no_failures(self, tmp_path, caplog):
        build_tree(tmp_path, ["a.jar", "org/lib/1.0/lib.pom", "org/lib/1.0/lib.jar"])
        seen = []
        lock = threading.Lock()

        def handler(request):
            with lock:
                seen.append((request.method, str(request.url)))
            return httpx.Response(403, text="artifact exists")

        with HTTPUploadClient(transport=httpx.MockTransport(handler)) as client:
            summary = PublishEngine(self._config(tmp_path, publisher_threads=2), client).publish()

        assert summary.failed == 0
        assert summary.already_existed == 3
        assert sorted(seen) == [
            ("PUT", "https://repo/x/a.jar"),
            ("PUT", "https://repo/x/org/lib/1.0/lib.jar"),
            ("PUT", "https://repo/x/org/lib/1.0/lib.pom"),
        ]
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]

    def test_uploads_outliving_drain_still_complete(self, tmp_path, monkeypatch, caplog):
        build_tree(tmp_path, ["a.jar", "b.jar", "c.jar"])
        seen = []
        lock = threading.Lock()
        all_seen = threading.Event()

        def handler(request):
            time.sleep(0.2)
            with lock:
                seen.append(str(request.url))
                if len(seen) == 3:
                    all_seen.set()
            return httpx.Response(201)

        transport = httpx.MockTransport(handler)
        monkeypatch.setattr(
            core, "HTTPUploadClient", lambda **kwargs: HTTPUploadClient(transport=transport, **kwargs)
        )
        engine = PublishEngine(self._config(tmp_path, publisher_threads=1, drain_timeout=0.05))

        summary = engine.publish()

        assert summary.unfinished > 0
        assert all_seen.wait(5)
        assert sorted(seen) == [
            "https://repo/x/a.jar",
            "https://repo/x/b.jar",
            "https://repo/x/c.jar",
        ]
        assert not [r for r in caplog.records if r.levelno >= logging.ERROR]

    def test_summary_counts_every_finished_upload(self, tmp_path, monkeypatch):
        build_tree(tmp_path, ["a.jar"])
        original = PublishEngine._log_unexpected

        def slow_done_callback(self, task, future):
            time.sleep(0.2)
            original(self, task, future)

        monkeypatch.setattr(PublishEngine, "_log_unexpected", slow_done_callback)

        summary = PublishEngine(self._config(tmp_path), ok_client()).publish()

        assert summary.succeeded == 1
        assert summary.unfinished == 0
        assert summary.completed + summary.unfinished == summary.submitted
