"""End-to-end test against a real ECS cluster.

Requires AWS credentials, a provider config file named by
ECS_KUBELET_CONFIG, and ECS_KUBELET_E2E=1. Launches one small Fargate task.
"""

from __future__ import annotations

import logging
import os
import time
import uuid

import pytest

from ecs_kubelet.pods import (
    Container,
    Pod,
    PodIdentity,
    PodPhase,
    ResourceRequirements,
)
from ecs_kubelet.provider import FargateProvider, NodeInfo, wait_for_phase

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

TEST_IMAGE = os.environ.get("ECS_KUBELET_TEST_IMAGE", "public.ecr.aws/docker/library/busybox:latest")

requires_aws = pytest.mark.skipif(
    os.environ.get("ECS_KUBELET_E2E") != "1",
    reason="set ECS_KUBELET_E2E=1 to run against AWS",
)


@pytest.fixture(scope="module")
def aws_provider():
    return FargateProvider(None, NodeInfo(name=f"e2e-{uuid.uuid4().hex[:8]}"))


@requires_aws
@pytest.mark.e2e
def test_pod_lifecycle(aws_provider):
    name = f"e2e-{uuid.uuid4().hex[:8]}"
    pod = Pod(
        identity=PodIdentity("default", name, str(uuid.uuid4())),
        containers=(
            Container(
                name="busybox",
                image=TEST_IMAGE,
                command=["sh", "-c"],
                args=["echo Started; sleep 3600"],
                resources=ResourceRequirements(requests={"cpu": "200", "memory": "450Mi"}),
            ),
        ),
    )

    aws_provider.create_pod(pod)
    try:
        status = wait_for_phase(aws_provider, "default", name, PodPhase.RUNNING, timeout=600, interval=5)
        assert status is not None and status.phase is PodPhase.RUNNING

        # awslogs delivery lags container output
        logs = ""
        deadline = time.monotonic() + 120
        while "Started" not in logs and time.monotonic() < deadline:
            time.sleep(5)
            logs = aws_provider.get_container_logs("default", name, "busybox", 10)
        assert logs == "Started\n"
    finally:
        aws_provider.delete_pod(pod)

    final = wait_for_phase(
        aws_provider, "default", name, [PodPhase.SUCCEEDED, PodPhase.FAILED], timeout=300, interval=5
    )
    logger.info("Pod %s final status: %s", name, final)
    assert final is None or final.phase is PodPhase.SUCCEEDED
