"""Unit tests for container log retrieval."""

from __future__ import annotations

import pytest

from ecs_kubelet.pods import NotFound
from ecs_kubelet.provider.lifecycle import LifecycleManager
from ecs_kubelet.provider.logs import LogRetriever
from ecs_kubelet.provider.mapping import IdentityMapping
from ecs_kubelet.provider.throttle import TokenBucket


@pytest.fixture
def mapping():
    return IdentityMapping()


@pytest.fixture
def entry(fake_ecs, mapping, config, make_pod):
    return LifecycleManager(fake_ecs, mapping, config, "vk-fargate").create(make_pod())


@pytest.fixture
def retriever(fake_logs, mapping, config):
    return LogRetriever(fake_logs, mapping, config.log_group, TokenBucket(1000.0))


def _stream(entry, container="busybox"):
    return f"{entry.family}/{container}/{entry.handle.task_id}"


class TestLogRetriever:
    """Test container log retrieval."""

    def test_started_output(self, retriever, entry, fake_logs, config):
        """Test reading a single line of output."""
        fake_logs.put(config.log_group, _stream(entry), "Started")

        assert retriever.get_logs("default", "test-pod", "busybox", 100) == "Started\n"
        assert fake_logs.calls == [(config.log_group, _stream(entry), 100)]

    def test_tail_lines(self, retriever, entry, fake_logs, config):
        """Test that only the last lines are returned."""
        fake_logs.put(config.log_group, _stream(entry), "one", "two", "three\n")

        assert retriever.get_logs("default", "test-pod", "busybox", 2) == "two\nthree\n"

    def test_non_positive_tail_returns_everything(self, retriever, entry, fake_logs, config):
        """Test that a non-positive tail returns the whole page."""
        fake_logs.put(config.log_group, _stream(entry), "one", "two")

        assert retriever.get_logs("default", "test-pod", "busybox", 0) == "one\ntwo\n"
        assert fake_logs.calls[-1][2] is None

    def test_missing_stream_is_empty(self, retriever, entry):
        """Test that a stream not yet written reads as empty."""
        assert retriever.get_logs("default", "test-pod", "busybox", 10) == ""

    def test_untracked_pod(self, retriever):
        """Test that logs of an unknown pod raise NotFound."""
        with pytest.raises(NotFound):
            retriever.get_logs("default", "ghost", "busybox", 10)

    def test_unknown_container(self, retriever, entry, fake_logs):
        """Test that logs of an unknown container raise NotFound."""
        with pytest.raises(NotFound, match="sidecar"):
            retriever.get_logs("default", "test-pod", "sidecar", 10)
        assert fake_logs.calls == []
