# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Test helpers for running durable orchestrations in-process."""

from durabletask_testhelpers.client import DurableClient, InstanceTracker
from durabletask_testhelpers.exceptions import (FunctionNotFoundError,
                                                HostConfigurationError,
                                                OrchestrationsFailedError,
                                                ReadyTimeoutError,
                                                ServiceNotFoundError,
                                                TestHelpersError)
from durabletask_testhelpers.host import HostBuilder, TestHost
from durabletask_testhelpers.jobs import JobHost
from durabletask_testhelpers.options import DurableTaskOptions
from durabletask_testhelpers.services import ServiceCollection
from durabletask_testhelpers.starters import timer_starter
from durabletask_testhelpers.timers import (ConstantSchedule, DailySchedule,
                                            ScheduleStatus, TimerInfo,
                                            TimerSchedule, WeeklySchedule)

__all__ = [
    "ConstantSchedule",
    "DailySchedule",
    "DurableClient",
    "DurableTaskOptions",
    "FunctionNotFoundError",
    "HostBuilder",
    "HostConfigurationError",
    "InstanceTracker",
    "JobHost",
    "OrchestrationsFailedError",
    "ReadyTimeoutError",
    "ScheduleStatus",
    "ServiceCollection",
    "ServiceNotFoundError",
    "TestHelpersError",
    "TestHost",
    "TimerInfo",
    "TimerSchedule",
    "WeeklySchedule",
    "timer_starter",
]
