# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from typing import Callable, Union

from durabletask import task

from durabletask_testhelpers.client import DurableClient
from durabletask_testhelpers.timers import TimerInfo


def timer_starter(orchestrator: Union[task.Orchestrator, str], name: str = "Starter") -> Callable[[DurableClient, TimerInfo], str]:
    """Builds a timer-triggered starter function that schedules `orchestrator`.

    The timer payload is passed to the orchestration as its input and the new
    instance ID is returned to the caller.
    """
    def starter(client: DurableClient, timer_info: TimerInfo) -> str:
        return client.schedule_new_orchestration(orchestrator, input=timer_info.to_dict())

    starter.__name__ = name
    starter.__qualname__ = name
    return starter
