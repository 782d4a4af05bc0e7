# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import asyncio
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock

import grpc
import pytest

from durabletask.client import OrchestrationStatus, TaskHubGrpcClient

from durabletask_testhelpers import (DurableClient, DurableTaskOptions,
                                     FunctionNotFoundError, InstanceTracker,
                                     JobHost, OrchestrationsFailedError,
                                     ReadyTimeoutError)


def new_state(instance_id: str, status: OrchestrationStatus, name: str = "orchestration", failure_details=None):
    return SimpleNamespace(
        instance_id=instance_id,
        name=name,
        runtime_status=status,
        failure_details=failure_details)


class FakeBackend:
    """Serves orchestration states from a dict, optionally advancing through a sequence per instance."""

    def __init__(self):
        self.states: dict[str, list] = {}

    def set(self, instance_id: str, *statuses: OrchestrationStatus, name: str = "orchestration", failure_details=None):
        self.states[instance_id] = [new_state(instance_id, s, name, failure_details) for s in statuses]

    def get(self, instance_id: str, fetch_payloads: bool = True):
        sequence = self.states.get(instance_id)
        if not sequence:
            return None
        if len(sequence) > 1:
            return sequence.pop(0)
        return sequence[0]


class NotFoundError(grpc.RpcError):
    def code(self):
        return grpc.StatusCode.NOT_FOUND


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def grpc_client(backend):
    grpc_client = MagicMock(spec=TaskHubGrpcClient)
    grpc_client.get_orchestration_state.side_effect = backend.get
    grpc_client.schedule_new_orchestration.side_effect = lambda orchestrator, **kwargs: kwargs["instance_id"] or "generated"
    return grpc_client


@pytest.fixture
def tracker():
    return InstanceTracker()


@pytest.fixture
def starters():
    return {}


@pytest.fixture
def jobs(grpc_client, tracker, starters):
    options = DurableTaskOptions(
        max_queue_polling_interval=timedelta(milliseconds=10),
        default_timeout=timedelta(seconds=1))
    return JobHost(DurableClient(grpc_client, tracker), tracker, starters, options)


def test_call_passes_client_and_arguments(jobs, starters):
    received = {}

    def starter(client, timer_info):
        received["client"] = client
        received["timer_info"] = timer_info
        return "abc"

    starters["Starter"] = starter

    assert jobs.call("Starter", {"timer_info": "payload"}) == "abc"
    assert received["client"] is jobs.client
    assert received["timer_info"] == "payload"


def test_call_runs_coroutine_starters(jobs, starters):
    async def starter(client):
        return "from-coroutine"

    starters["AsyncStarter"] = starter

    assert jobs.call("AsyncStarter") == "from-coroutine"


@pytest.mark.asyncio
async def test_call_async_awaits_starters(jobs, starters):
    async def starter(client, value):
        return value * 2

    starters["AsyncStarter"] = starter

    assert await jobs.call_async("AsyncStarter", {"value": 21}) == 42


@pytest.mark.asyncio
async def test_call_runs_coroutine_starters_inside_running_loop(jobs, starters):
    async def starter(client, value):
        await asyncio.sleep(0)
        return value + 1

    starters["AsyncStarter"] = starter

    assert jobs.call("AsyncStarter", {"value": 41}) == 42


def test_call_unknown_function(jobs):
    with pytest.raises(FunctionNotFoundError) as exc_info:
        jobs.call("DoesNotExist")
    assert exc_info.value.name == "DoesNotExist"


def test_scheduled_instances_are_tracked(jobs, tracker):
    instance_id = jobs.client.schedule_new_orchestration("orchestration", instance_id="abc")
    assert instance_id == "abc"
    assert "abc" in tracker


def test_ready_waits_for_running_instances(jobs, tracker, backend, grpc_client):
    tracker.add("abc")
    backend.set("abc", OrchestrationStatus.PENDING, OrchestrationStatus.RUNNING, OrchestrationStatus.COMPLETED)

    assert jobs.ready() is jobs
    assert grpc_client.get_orchestration_state.call_count == 3


def test_ready_without_instances(jobs, grpc_client):
    jobs.ready()
    grpc_client.get_orchestration_state.assert_not_called()


def test_ready_does_not_raise_for_failed_instances(jobs, tracker, backend):
    tracker.add("abc")
    backend.set("abc", OrchestrationStatus.FAILED)

    jobs.ready()


def test_ready_timeout(jobs, tracker, backend):
    tracker.add("abc")
    backend.set("abc", OrchestrationStatus.RUNNING)

    with pytest.raises(ReadyTimeoutError) as exc_info:
        jobs.ready(timeout=timedelta(milliseconds=50))

    assert isinstance(exc_info.value, TimeoutError)
    assert [s.instance_id for s in exc_info.value.pending] == ["abc"]


def test_ready_forgets_instances_purged_elsewhere(jobs, tracker):
    tracker.add("gone")

    jobs.ready()

    assert "gone" not in tracker


def test_wait_for_only_considers_named_orchestration(jobs, tracker, backend):
    tracker.add("a")
    tracker.add("b")
    backend.set("a", OrchestrationStatus.COMPLETED, name="first")
    backend.set("b", OrchestrationStatus.RUNNING, name="second")

    jobs.wait_for("first", timeout=0.05)
    with pytest.raises(ReadyTimeoutError):
        jobs.wait_for("second", timeout=0.05)


def test_throw_if_failed(jobs, tracker, backend):
    tracker.add("ok")
    tracker.add("failed")
    backend.set("ok", OrchestrationStatus.COMPLETED)
    details = SimpleNamespace(error_type="ValueError", message="boom", stack_trace=None)
    backend.set("failed", OrchestrationStatus.FAILED, failure_details=details)

    with pytest.raises(OrchestrationsFailedError) as exc_info:
        jobs.throw_if_failed()

    assert [s.instance_id for s in exc_info.value.failures] == ["failed"]
    assert "[ValueError] boom" in str(exc_info.value)


def test_throw_if_failed_passes_through(jobs, tracker, backend):
    tracker.add("ok")
    backend.set("ok", OrchestrationStatus.COMPLETED)

    assert jobs.throw_if_failed() is jobs


def test_terminate_only_running_instances(jobs, tracker, backend, grpc_client):
    tracker.add("running")
    tracker.add("done")
    backend.set("running", OrchestrationStatus.RUNNING, OrchestrationStatus.RUNNING, OrchestrationStatus.TERMINATED)
    backend.set("done", OrchestrationStatus.COMPLETED)

    assert jobs.terminate(reason="cleanup") is jobs

    grpc_client.terminate_orchestration.assert_called_once_with("running", output="cleanup")


def test_purge_skips_running_instances(jobs, tracker, backend, grpc_client):
    tracker.add("running")
    tracker.add("done")
    backend.set("running", OrchestrationStatus.RUNNING)
    backend.set("done", OrchestrationStatus.COMPLETED)

    jobs.purge()

    grpc_client.purge_orchestration.assert_called_once_with("done")
    assert tracker.snapshot() == ["running"]


def test_purge_tolerates_missing_instances(jobs, tracker, backend, grpc_client):
    tracker.add("done")
    backend.set("done", OrchestrationStatus.COMPLETED)
    grpc_client.purge_orchestration.side_effect = NotFoundError()

    jobs.purge()

    assert len(tracker) == 0


def test_purge_propagates_other_rpc_errors(jobs, tracker, backend, grpc_client):
    class UnavailableError(grpc.RpcError):
        def code(self):
            return grpc.StatusCode.UNAVAILABLE

    tracker.add("done")
    backend.set("done", OrchestrationStatus.COMPLETED)
    grpc_client.purge_orchestration.side_effect = UnavailableError()

    with pytest.raises(grpc.RpcError):
        jobs.purge()


def test_fluent_chain(jobs, tracker, backend, grpc_client):
    tracker.add("abc")
    backend.set("abc", OrchestrationStatus.RUNNING, OrchestrationStatus.COMPLETED)

    jobs.ready().throw_if_failed().purge()

    grpc_client.purge_orchestration.assert_called_once_with("abc")
    assert len(tracker) == 0
