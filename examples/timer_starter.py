#!/usr/bin/env python3
# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
Example demonstrating the test host with a timer-triggered starter.

This example shows how to:
1. Build a host that injects a mock into an activity
2. Trigger the orchestration through a timer starter
3. Wait for it with the fluent helpers and inspect the mock
"""

from datetime import timedelta
from unittest.mock import MagicMock

from durabletask_testhelpers import (HostBuilder, OrchestrationsFailedError,
                                     TimerInfo, WeeklySchedule, timer_starter)


class Notifier:
    def notify(self, message: str):
        raise NotImplementedError()


def send_notification(ctx, message: str, notifier: Notifier):
    notifier.notify(message)


def weekly_report(ctx, timer_info: dict):
    yield ctx.call_activity(send_notification, input="Weekly report is ready")
    return "sent"


def main():
    notifier = MagicMock(spec=Notifier)

    host = (HostBuilder()
            .add_durable_task(hub_name="TimerStarterExample", max_queue_polling_interval=timedelta(seconds=1))
            .configure_services(lambda services: services.add_singleton(Notifier, notifier))
            .add_orchestrator(weekly_report)
            .add_activity(send_notification)
            .add_starter(timer_starter(weekly_report))
            .build())

    with host:
        instance_id = host.jobs.call("Starter", {"timer_info": TimerInfo(WeeklySchedule())})
        print(f"Orchestration scheduled with ID: {instance_id}")

        try:
            host.jobs.ready(timeout=timedelta(seconds=10)).throw_if_failed()
        except OrchestrationsFailedError as ex:
            print(f"✗ {ex}")
            return

        state = host.jobs.client.get_orchestration_state(instance_id)
        print(f"Status: {state.runtime_status}")
        print(f"Output: {state.serialized_output}")
        print(f"Notifier calls: {notifier.notify.call_args_list}")

        host.jobs.purge()


if __name__ == "__main__":
    main()
