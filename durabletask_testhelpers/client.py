# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging
import threading
from datetime import datetime
from typing import Any, Optional, Union

from durabletask import task
from durabletask.client import OrchestrationState, TaskHubGrpcClient, TInput, TOutput

import durabletask.internal.shared as shared


class InstanceTracker:
    """Thread-safe, insertion-ordered set of orchestration instance IDs started by a test host."""

    def __init__(self):
        self._lock = threading.Lock()
        self._instance_ids: dict[str, None] = {}

    def add(self, instance_id: str) -> None:
        with self._lock:
            self._instance_ids[instance_id] = None

    def discard(self, instance_id: str) -> None:
        with self._lock:
            self._instance_ids.pop(instance_id, None)

    def clear(self) -> None:
        with self._lock:
            self._instance_ids.clear()

    def snapshot(self) -> list[str]:
        with self._lock:
            return list(self._instance_ids)

    def __contains__(self, instance_id: str) -> bool:
        with self._lock:
            return instance_id in self._instance_ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._instance_ids)


class DurableClient:
    """The durable client binding handed to starter functions.

    Delegates to a `TaskHubGrpcClient` and records every scheduled instance so that
    the job host can wait for, terminate and purge it later.
    """

    def __init__(self, client: TaskHubGrpcClient, tracker: InstanceTracker, *,
                 log_handler: Optional[logging.Handler] = None,
                 log_formatter: Optional[logging.Formatter] = None):
        self._client = client
        self._tracker = tracker
        self._logger = shared.get_logger("testhelpers-client", log_handler, log_formatter)

    @property
    def inner(self) -> TaskHubGrpcClient:
        return self._client

    def schedule_new_orchestration(self, orchestrator: Union[task.Orchestrator[TInput, TOutput], str], *,
                                   input: Optional[TInput] = None,
                                   instance_id: Optional[str] = None,
                                   start_at: Optional[datetime] = None) -> str:
        instance_id = self._client.schedule_new_orchestration(
            orchestrator, input=input, instance_id=instance_id, start_at=start_at)
        self._tracker.add(instance_id)
        self._logger.info(f"Tracking instance '{instance_id}'.")
        return instance_id

    def get_orchestration_state(self, instance_id: str, *, fetch_payloads: bool = True) -> Optional[OrchestrationState]:
        return self._client.get_orchestration_state(instance_id, fetch_payloads=fetch_payloads)

    def wait_for_orchestration_completion(self, instance_id: str, *,
                                          fetch_payloads: bool = True,
                                          timeout: int = 60) -> Optional[OrchestrationState]:
        return self._client.wait_for_orchestration_completion(
            instance_id, fetch_payloads=fetch_payloads, timeout=timeout)

    def raise_orchestration_event(self, instance_id: str, event_name: str, *, data: Optional[Any] = None):
        self._client.raise_orchestration_event(instance_id, event_name, data=data)

    def terminate_orchestration(self, instance_id: str, *, output: Optional[Any] = None):
        self._client.terminate_orchestration(instance_id, output=output)

    def purge_orchestration(self, instance_id: str):
        self._client.purge_orchestration(instance_id)
        self._tracker.discard(instance_id)
