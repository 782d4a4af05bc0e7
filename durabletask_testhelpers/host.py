# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import logging
from typing import Any, Callable, Optional

from durabletask import task
from durabletask.client import TaskHubGrpcClient
from durabletask.testing import InMemoryOrchestrationBackend
from durabletask.worker import TaskHubGrpcWorker

import durabletask.internal.shared as shared
from durabletask_testhelpers.client import DurableClient, InstanceTracker
from durabletask_testhelpers.exceptions import HostConfigurationError
from durabletask_testhelpers.jobs import JobHost
from durabletask_testhelpers.options import DurableTaskOptions
from durabletask_testhelpers.services import ServiceCollection


class TestHost:
    """A minimal in-process host for durable functions under test.

    Owns the backend (unless an external sidecar address is configured), a worker with
    the registered orchestrators and activities, and a client exposed through `jobs`.
    Use it as a context manager or call `start` and `stop` explicitly, typically from a
    module- or session-scoped pytest fixture.
    """
    __test__ = False

    def __init__(self, options: DurableTaskOptions, services: ServiceCollection,
                 orchestrators: list[task.Orchestrator], activities: list[task.Activity],
                 starters: dict[str, Callable[..., Any]], *,
                 log_handler: Optional[logging.Handler] = None,
                 log_formatter: Optional[logging.Formatter] = None):
        self._options = options
        self._services = services
        self._orchestrators = orchestrators
        self._activities = activities
        self._log_handler = log_handler
        self._log_formatter = log_formatter
        self._logger = shared.get_logger("testhelpers-host", log_handler, log_formatter)
        self._backend: Optional[InMemoryOrchestrationBackend] = None
        self._worker: Optional[TaskHubGrpcWorker] = None
        self._is_running = False

        self._tracker = InstanceTracker()
        grpc_client = TaskHubGrpcClient(
            host_address=options.address,
            metadata=options.metadata,
            log_handler=log_handler,
            log_formatter=log_formatter)
        self._client = DurableClient(
            grpc_client, self._tracker, log_handler=log_handler, log_formatter=log_formatter)
        self._jobs = JobHost(
            self._client, self._tracker, starters, options,
            log_handler=log_handler, log_formatter=log_formatter)

    @property
    def options(self) -> DurableTaskOptions:
        return self._options

    @property
    def services(self) -> ServiceCollection:
        return self._services

    @property
    def client(self) -> DurableClient:
        return self._client

    @property
    def jobs(self) -> JobHost:
        return self._jobs

    @property
    def is_running(self) -> bool:
        return self._is_running

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, type, value, traceback):
        self.stop()

    def start(self) -> None:
        if self._is_running:
            raise RuntimeError("The host is already running.")

        if self._options.uses_in_memory_backend:
            self._backend = InMemoryOrchestrationBackend(port=self._options.port)
            self._backend.start()

        try:
            self._worker = TaskHubGrpcWorker(
                host_address=self._options.address,
                metadata=self._options.metadata,
                log_handler=self._log_handler,
                log_formatter=self._log_formatter,
                concurrency_options=self._options.concurrency_options)
            for orchestrator in self._orchestrators:
                self._worker.add_orchestrator(orchestrator)
            for activity in self._activities:
                self._worker.add_activity(activity)
            self._worker.start()
        except Exception:
            self._worker = None
            self._stop_backend()
            raise

        self._is_running = True
        self._logger.info(f"Host started for task hub '{self._options.hub_name}' on {self._options.address}.")

    def stop(self) -> None:
        if not self._is_running:
            return

        if self._worker is not None:
            self._worker.stop()
            self._worker = None
        self._stop_backend()

        self._tracker.clear()
        self._is_running = False
        self._logger.info("Host stopped.")

    def _stop_backend(self) -> None:
        if self._backend is not None:
            self._backend.stop()
            self._backend.reset()
            self._backend = None


class HostBuilder:
    """Fluent builder for `TestHost`.

    Example:
        >>> host = (HostBuilder()
        ...         .add_durable_task(hub_name="MyTests", max_queue_polling_interval=timedelta(seconds=2))
        ...         .configure_services(lambda services: services.add_singleton(Injectable, mock))
        ...         .add_orchestrator(orchestration)
        ...         .add_activity(execute)
        ...         .add_starter(timer_starter(orchestration))
        ...         .build())
    """

    def __init__(self):
        self._options: Optional[DurableTaskOptions] = None
        self._services = ServiceCollection()
        self._orchestrators: list[task.Orchestrator] = []
        self._activities: list[task.Activity] = []
        self._starters: dict[str, Callable[..., Any]] = {}
        self._log_handler: Optional[logging.Handler] = None
        self._log_formatter: Optional[logging.Formatter] = None

    def add_durable_task(self, configure: Optional[Callable[[DurableTaskOptions], None]] = None,
                         **options) -> 'HostBuilder':
        """Adds the durable task extension. Options are read from the environment, then `options`, then `configure`."""
        self._options = DurableTaskOptions.from_env(**options)
        if configure is not None:
            configure(self._options)
        return self

    def configure_services(self, configure: Callable[[ServiceCollection], Any]) -> 'HostBuilder':
        configure(self._services)
        return self

    def configure_logging(self, log_handler: Optional[logging.Handler] = None,
                          log_formatter: Optional[logging.Formatter] = None) -> 'HostBuilder':
        self._log_handler = log_handler
        self._log_formatter = log_formatter
        return self

    def add_orchestrator(self, fn: task.Orchestrator) -> 'HostBuilder':
        self._orchestrators.append(self._services.inject(fn))
        return self

    def add_activity(self, fn: task.Activity) -> 'HostBuilder':
        self._activities.append(self._services.inject(fn))
        return self

    def add_starter(self, fn: Callable[..., Any], name: Optional[str] = None) -> 'HostBuilder':
        name = name if name else fn.__name__
        if name in self._starters:
            raise HostConfigurationError(f"A starter function named '{name}' is already registered.")
        self._starters[name] = self._services.inject(fn)
        return self

    def build(self) -> TestHost:
        if self._options is None:
            raise HostConfigurationError("add_durable_task() must be called before build().")
        self._options.validate()
        return TestHost(
            self._options, self._services,
            list(self._orchestrators), list(self._activities), dict(self._starters),
            log_handler=self._log_handler, log_formatter=self._log_formatter)
