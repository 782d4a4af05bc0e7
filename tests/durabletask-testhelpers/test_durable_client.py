# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging
from unittest.mock import MagicMock

import pytest

from durabletask.client import TaskHubGrpcClient

from durabletask_testhelpers import DurableClient, InstanceTracker


@pytest.fixture
def grpc_client():
    return MagicMock(spec=TaskHubGrpcClient)


@pytest.fixture
def tracker():
    return InstanceTracker()


@pytest.fixture
def client(grpc_client, tracker):
    return DurableClient(grpc_client, tracker)


def test_schedule_new_orchestration_tracks_instance(client, grpc_client, tracker):
    grpc_client.schedule_new_orchestration.return_value = "abc"

    assert client.schedule_new_orchestration("orchestration", input={"a": 1}) == "abc"

    grpc_client.schedule_new_orchestration.assert_called_once_with(
        "orchestration", input={"a": 1}, instance_id=None, start_at=None)
    assert tracker.snapshot() == ["abc"]


def test_raise_orchestration_event(client, grpc_client):
    client.raise_orchestration_event("abc", "approval", data="yes")

    grpc_client.raise_orchestration_event.assert_called_once_with("abc", "approval", data="yes")


def test_wait_for_orchestration_completion(client, grpc_client):
    state = MagicMock()
    grpc_client.wait_for_orchestration_completion.return_value = state

    assert client.wait_for_orchestration_completion("abc", fetch_payloads=False, timeout=5) is state

    grpc_client.wait_for_orchestration_completion.assert_called_once_with(
        "abc", fetch_payloads=False, timeout=5)


def test_get_orchestration_state(client, grpc_client):
    client.get_orchestration_state("abc")

    grpc_client.get_orchestration_state.assert_called_once_with("abc", fetch_payloads=True)


def test_terminate_orchestration(client, grpc_client):
    client.terminate_orchestration("abc", output="stopped")

    grpc_client.terminate_orchestration.assert_called_once_with("abc", output="stopped")


def test_purge_orchestration_forgets_instance(client, grpc_client, tracker):
    tracker.add("abc")
    tracker.add("other")

    client.purge_orchestration("abc")

    grpc_client.purge_orchestration.assert_called_once_with("abc")
    assert tracker.snapshot() == ["other"]


def test_purge_orchestration_failure_keeps_instance(client, grpc_client, tracker):
    tracker.add("abc")
    grpc_client.purge_orchestration.side_effect = RuntimeError("unavailable")

    with pytest.raises(RuntimeError):
        client.purge_orchestration("abc")

    assert "abc" in tracker


def test_inner_client(client, grpc_client):
    assert client.inner is grpc_client


def test_scheduled_instances_are_logged_at_info(grpc_client, tracker):
    records = []

    class RecordingHandler(logging.Handler):
        def emit(self, record):
            records.append(record)

    client = DurableClient(grpc_client, tracker, log_handler=RecordingHandler())
    grpc_client.schedule_new_orchestration.return_value = "abc"

    client.schedule_new_orchestration("orchestration")

    assert [(r.levelno, r.getMessage()) for r in records] == [(logging.INFO, "Tracking instance 'abc'.")]
