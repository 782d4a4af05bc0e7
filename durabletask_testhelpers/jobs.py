# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import asyncio
import inspect
import logging
import time
from concurrent import futures
from datetime import timedelta
from typing import Any, Callable, Optional, Union

import grpc
from durabletask.client import OrchestrationState, OrchestrationStatus

import durabletask.internal.shared as shared
from durabletask_testhelpers.client import DurableClient, InstanceTracker
from durabletask_testhelpers.exceptions import (FunctionNotFoundError,
                                                OrchestrationsFailedError,
                                                ReadyTimeoutError)
from durabletask_testhelpers.options import DurableTaskOptions

Timeout = Union[timedelta, float, int]

RUNNING_STATUSES = frozenset([
    OrchestrationStatus.RUNNING,
    OrchestrationStatus.PENDING,
    OrchestrationStatus.SUSPENDED,
    OrchestrationStatus.CONTINUED_AS_NEW,
])

_INITIAL_POLLING_DELAY = 0.1


def is_running(state: OrchestrationState) -> bool:
    return state.runtime_status in RUNNING_STATUSES


def _to_seconds(timeout: Timeout) -> float:
    if isinstance(timeout, timedelta):
        return timeout.total_seconds()
    return float(timeout)


class JobHost:
    """Invokes starter functions and asserts on the orchestrations they schedule.

    Every assertion returns the job host itself, so calls can be chained:

        >>> host.jobs.call("Starter", {"timer_info": TimerInfo(WeeklySchedule())})
        >>> host.jobs.ready().throw_if_failed().purge()
    """

    def __init__(self, client: DurableClient, tracker: InstanceTracker,
                 starters: dict[str, Callable[..., Any]], options: DurableTaskOptions, *,
                 log_handler: Optional[logging.Handler] = None,
                 log_formatter: Optional[logging.Formatter] = None):
        self._client = client
        self._tracker = tracker
        self._starters = starters
        self._options = options
        self._logger = shared.get_logger("testhelpers-jobs", log_handler, log_formatter)

    @property
    def client(self) -> DurableClient:
        return self._client

    def _get_starter(self, name: str) -> Callable[..., Any]:
        fn = self._starters.get(name)
        if fn is None:
            raise FunctionNotFoundError(name)
        return fn

    def call(self, name: str, arguments: Optional[dict[str, Any]] = None) -> Any:
        """Invokes the starter function `name` with the durable client and `arguments` as keyword arguments."""
        fn = self._get_starter(name)
        self._logger.info(f"Executing '{name}'.")
        result = fn(self._client, **(arguments or {}))
        if inspect.isawaitable(result):
            result = _run_to_completion(result)
        self._logger.info(f"Executed '{name}'.")
        return result

    async def call_async(self, name: str, arguments: Optional[dict[str, Any]] = None) -> Any:
        fn = self._get_starter(name)
        self._logger.info(f"Executing '{name}'.")
        result = fn(self._client, **(arguments or {}))
        if inspect.isawaitable(result):
            result = await result
        self._logger.info(f"Executed '{name}'.")
        return result

    def instances(self) -> list[OrchestrationState]:
        """Fetches the current state of every tracked orchestration instance."""
        states = []
        for instance_id in self._tracker.snapshot():
            state = self._client.get_orchestration_state(instance_id, fetch_payloads=True)
            if state is None:
                # purged outside of the job host
                self._tracker.discard(instance_id)
                continue
            states.append(state)
        return states

    def _wait(self, predicate: Callable[[OrchestrationState], bool], timeout: Optional[Timeout]) -> None:
        timeout_seconds = _to_seconds(timeout if timeout is not None else self._options.default_timeout)
        max_delay = self._options.max_queue_polling_interval.total_seconds()
        deadline = time.monotonic() + timeout_seconds
        delay = min(_INITIAL_POLLING_DELAY, max_delay)

        while True:
            pending = [s for s in self.instances() if predicate(s) and is_running(s)]
            if not pending:
                return

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReadyTimeoutError(timeout_seconds, pending)

            self._logger.debug(f"Waiting for {len(pending)} orchestration(s) to complete.")
            time.sleep(min(delay, remaining))
            delay = min(delay * 2, max_delay)

    def ready(self, timeout: Optional[Timeout] = None) -> 'JobHost':
        """Waits until no tracked orchestration is running. Failed orchestrations do not raise."""
        self._logger.info("Waiting for all orchestrations to complete.")
        self._wait(lambda _: True, timeout)
        return self

    def wait_for(self, orchestration_name: str, timeout: Optional[Timeout] = None) -> 'JobHost':
        """Waits until no tracked instance of `orchestration_name` is running."""
        self._logger.info(f"Waiting for '{orchestration_name}' orchestrations to complete.")
        self._wait(lambda s: s.name == orchestration_name, timeout)
        return self

    def throw_if_failed(self) -> 'JobHost':
        failures = [s for s in self.instances() if s.runtime_status == OrchestrationStatus.FAILED]
        if failures:
            raise OrchestrationsFailedError(failures)
        return self

    def terminate(self, reason: Optional[str] = None) -> 'JobHost':
        """Terminates every running orchestration and waits until the backend reports it terminated."""
        running = [s for s in self.instances() if is_running(s)]
        for state in running:
            self._logger.info(f"Terminating '{state.name}' ({state.instance_id}).")
            self._client.terminate_orchestration(state.instance_id, output=reason)

        terminated = {s.instance_id for s in running}
        self._wait(lambda s: s.instance_id in terminated, None)
        return self

    def purge(self) -> 'JobHost':
        """Purges the history of every completed, failed or terminated orchestration."""
        for state in self.instances():
            if is_running(state):
                self._logger.warning(
                    f"Not purging '{state.name}' ({state.instance_id}) because it is still {state.runtime_status}.")
                continue
            try:
                self._client.purge_orchestration(state.instance_id)
            except grpc.RpcError as rpc_error:
                if rpc_error.code() != grpc.StatusCode.NOT_FOUND:  # type: ignore
                    raise
                self._logger.warning(f"Instance '{state.instance_id}' was already purged.")
                self._tracker.discard(state.instance_id)
                continue
            self._logger.info(f"Purged '{state.name}' ({state.instance_id}).")
        return self


async def _await(awaitable):
    return await awaitable


def _run_to_completion(awaitable):
    """Runs `awaitable` on a fresh event loop, on a worker thread when the caller already runs one."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        loop_running = False
    else:
        loop_running = True

    if not loop_running:
        return asyncio.run(_await(awaitable))

    with futures.ThreadPoolExecutor(max_workers=1) as executor:
        return executor.submit(asyncio.run, _await(awaitable)).result()
