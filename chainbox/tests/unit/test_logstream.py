"""Tests for LogStream and LogProcessor."""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from chainbox.commands.errors import ChainboxError, ConfigurationError
from chainbox.testenv.config import LoggingConfig, LogStreamConfig
from chainbox.testenv.logstream import LogProcessor, LogStream, LogTarget


def make_stream(tmp_path, targets=("file",), name="test_logstream"):
    cfg = LoggingConfig(
        log_stream=LogStreamConfig(log_targets=list(targets)),
        log_dir=str(tmp_path / "logs"),
    )
    return LogStream(SimpleNamespace(name=name), cfg, logger=MagicMock())


def test_targets_are_parsed_and_deduplicated(tmp_path):
    stream = make_stream(tmp_path, targets=("FILE", "console", "file"))

    assert stream.targets == [LogTarget.FILE, LogTarget.CONSOLE]


def test_unknown_target_rejected(tmp_path):
    with pytest.raises(ConfigurationError, match="loki"):
        make_stream(tmp_path, targets=("loki",))


def test_log_folder_named_after_test(tmp_path):
    stream = make_stream(tmp_path, name="test_cluster[geth]")

    assert stream.log_dir.parent == tmp_path / "logs"
    assert stream.log_dir.name.startswith("test_cluster_geth")


def test_write_goes_to_container_file(tmp_path):
    stream = make_stream(tmp_path)

    stream.write("node-0", '{"level":"info","msg":"started"}')
    stream.write("node-0", '{"level":"info","msg":"ready"}')
    stream.flush_and_shutdown()

    lines = stream.container_log_path("node-0").read_text().splitlines()
    assert lines == ['{"level":"info","msg":"started"}', '{"level":"info","msg":"ready"}']


def test_writes_after_shutdown_are_dropped(tmp_path):
    stream = make_stream(tmp_path)
    stream.write("node-0", "before")
    stream.flush_and_shutdown()

    stream.write("node-0", "after")

    assert stream.container_log_path("node-0").read_text() == "before\n"


def test_connect_container_follows_output(tmp_path):
    stream = make_stream(tmp_path)
    container = MagicMock()
    container.name = "geth-1337"
    container.logs.return_value = iter([b"first line\nsec", b"ond line\n", b"tail"])

    stream.connect_container(container)
    stream._readers["geth-1337"].join(timeout=5)
    stream.flush_and_shutdown()

    container.logs.assert_called_once_with(stream=True, follow=True)
    lines = stream.container_log_path("geth-1337").read_text().splitlines()
    assert lines == ["first line", "second line", "tail"]


def test_connect_container_once_per_name(tmp_path):
    stream = make_stream(tmp_path)
    container = MagicMock()
    container.name = "node-0"
    container.logs.return_value = iter([])

    stream.connect_container(container)
    stream.connect_container(container)
    stream.flush_and_shutdown()

    container.logs.assert_called_once()


def test_shutdown_closes_files_and_forgets_readers(tmp_path):
    stream = make_stream(tmp_path)
    container = MagicMock()
    container.name = "node-0"
    container.logs.return_value = iter([b"line\n"])
    stream.connect_container(container)
    stream._readers["node-0"].join(timeout=5)
    handle = stream._file_for("node-0")

    assert stream.shutdown() == []

    assert handle.closed is True
    assert stream._files == {}
    assert stream._readers == {}
    assert stream.shutdown() == []


def test_no_container_connected_after_shutdown(tmp_path):
    stream = make_stream(tmp_path)
    stream.shutdown()
    container = MagicMock()
    container.name = "node-0"

    stream.connect_container(container)

    container.logs.assert_not_called()


def test_save_log_location_in_test_summary(tmp_path, monkeypatch):
    summary = tmp_path / "summary.json"
    summary.write_text(json.dumps({"other_test": {"log_location": "/elsewhere"}}))
    monkeypatch.setenv("TEST_SUMMARY_PATH", str(summary))
    stream = make_stream(tmp_path, name="test_cluster")

    stream.save_log_location_in_test_summary()

    data = json.loads(summary.read_text())
    assert data["other_test"] == {"log_location": "/elsewhere"}
    assert data["test_cluster"] == {"log_location": stream.get_log_location()}


def test_summary_skipped_without_file_target(tmp_path, monkeypatch):
    summary = tmp_path / "summary.json"
    monkeypatch.setenv("TEST_SUMMARY_PATH", str(summary))
    stream = make_stream(tmp_path, targets=("console",))

    stream.save_log_location_in_test_summary()

    assert not summary.exists()


class TestLogProcessor:
    def test_replays_lines_through_accumulator(self, tmp_path):
        stream = make_stream(tmp_path)
        for line in ("a", "bb", "ccc"):
            stream.write("node-1", line)

        total = LogProcessor(stream, initial=0).process_container_logs(
            "node-1", lambda line, acc: acc + len(line)
        )

        assert total == 6

    def test_unknown_container_returns_initial(self, tmp_path):
        stream = make_stream(tmp_path)

        result = LogProcessor(stream, initial=7).process_container_logs(
            "missing", lambda line, acc: acc + 1
        )

        assert result == 7

    def test_requires_file_target(self, tmp_path):
        stream = make_stream(tmp_path, targets=("console",))

        with pytest.raises(ChainboxError) as exc_info:
            LogProcessor(stream).process_container_logs("node-0", lambda l, a: a)

        assert exc_info.value.code == "FILE_TARGET_REQUIRED"

    def test_errors_from_processing_propagate(self, tmp_path):
        stream = make_stream(tmp_path)
        stream.write("node-0", "bad")

        def explode(line, acc):
            raise RuntimeError(line)

        with pytest.raises(RuntimeError, match="bad"):
            LogProcessor(stream).process_container_logs("node-0", explode)
