"""Unit tests for wait_for_phase."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from ecs_kubelet.pods import PodPhase, PodStatus, PollTimeout
from ecs_kubelet.provider.wait import wait_for_phase


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


def _source(*phases):
    source = MagicMock()
    source.get_pod_status.side_effect = [None if p is None else PodStatus(phase=p) for p in phases]
    return source


class TestWaitForPhase:
    """Test polling a pod until it reaches a phase."""

    def test_returns_matching_status(self):
        """Test that polling stops at the first matching phase."""
        clock = FakeClock()
        source = _source(PodPhase.PENDING, PodPhase.PENDING, PodPhase.RUNNING)

        status = wait_for_phase(source, "default", "web", PodPhase.RUNNING, 60, 1.0, clock=clock, sleep=clock.sleep)

        assert status.phase is PodPhase.RUNNING
        assert source.get_pod_status.call_count == 3
        assert clock.now == 2.0

    def test_accepts_several_phases(self):
        """Test that any of several wanted phases ends the wait."""
        clock = FakeClock()
        source = _source(PodPhase.RUNNING, PodPhase.FAILED)

        status = wait_for_phase(
            source, "default", "web", [PodPhase.SUCCEEDED, PodPhase.FAILED], 60, clock=clock, sleep=clock.sleep
        )

        assert status.phase is PodPhase.FAILED

    def test_absent_pod_returns_none(self):
        """Test that a pod that disappears ends the wait with None."""
        clock = FakeClock()
        source = _source(PodPhase.RUNNING, None)

        assert wait_for_phase(source, "default", "web", PodPhase.SUCCEEDED, 60, clock=clock, sleep=clock.sleep) is None

    def test_timeout(self):
        """Test that the deadline raises PollTimeout with the last phase."""
        clock = FakeClock()
        source = MagicMock()
        source.get_pod_status.return_value = PodStatus(phase=PodPhase.PENDING)

        with pytest.raises(PollTimeout, match="still Pending"):
            wait_for_phase(source, "default", "web", PodPhase.RUNNING, 10, 3.0, clock=clock, sleep=clock.sleep)

        # polled at 0, 3, 6, 9 and at the deadline
        assert source.get_pod_status.call_count == 5
        assert clock.now == 10.0
