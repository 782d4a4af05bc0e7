# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import os
from datetime import timedelta
from typing import Optional

from durabletask.worker import ConcurrencyOptions

ENV_PREFIX = "DURABLETASK_TESTHELPERS_"


class DurableTaskOptions:
    """Hosting options for the durable task extension of a test host."""

    def __init__(
            self,
            *,
            hub_name: str = "TestHubName",
            max_queue_polling_interval: timedelta = timedelta(seconds=2),
            host_address: Optional[str] = None,
            port: int = 50051,
            default_timeout: timedelta = timedelta(seconds=60),
            concurrency_options: Optional[ConcurrencyOptions] = None,
    ):
        """Initialize durable task options.

        Args:
            hub_name: Name of the task hub. Sent to the backend as `taskhub` metadata.
            max_queue_polling_interval: Maximum delay between two status polls while
                waiting for orchestrations.
            host_address: Address of an external sidecar. When not set, the host
                starts an in-memory backend of its own.
            port: Port the in-memory backend listens on.
            default_timeout: Timeout applied by `JobHost.ready` when none is given.
            concurrency_options: Concurrency options forwarded to the worker.
        """
        self.hub_name = hub_name
        self.max_queue_polling_interval = max_queue_polling_interval
        self.host_address = host_address
        self.port = port
        self.default_timeout = default_timeout
        self.concurrency_options = concurrency_options

    @property
    def uses_in_memory_backend(self) -> bool:
        return not self.host_address

    @property
    def address(self) -> str:
        if self.host_address:
            return self.host_address
        return f"localhost:{self.port}"

    @property
    def metadata(self) -> list[tuple[str, str]]:
        return [("taskhub", self.hub_name)]

    def validate(self) -> None:
        if not self.hub_name:
            raise ValueError("hub_name must not be empty.")
        if self.max_queue_polling_interval <= timedelta(0):
            raise ValueError("max_queue_polling_interval must be positive.")
        if self.default_timeout <= timedelta(0):
            raise ValueError("default_timeout must be positive.")
        if not 0 < self.port < 65536:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}.")

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, **overrides) -> 'DurableTaskOptions':
        """Creates options from environment variables. Keyword arguments win over the environment."""
        values = {}

        hub_name = os.getenv(f"{prefix}HUB_NAME")
        if hub_name is not None:
            values["hub_name"] = hub_name

        host_address = os.getenv(f"{prefix}HOST_ADDRESS")
        if host_address:
            values["host_address"] = host_address

        port = os.getenv(f"{prefix}PORT")
        if port:
            values["port"] = int(port)

        polling_interval = os.getenv(f"{prefix}MAX_QUEUE_POLLING_INTERVAL")
        if polling_interval:
            values["max_queue_polling_interval"] = timedelta(seconds=float(polling_interval))

        default_timeout = os.getenv(f"{prefix}DEFAULT_TIMEOUT")
        if default_timeout:
            values["default_timeout"] = timedelta(seconds=float(default_timeout))

        values.update(overrides)
        options = cls(**values)
        options.validate()
        return options

    def __repr__(self):
        return (f"DurableTaskOptions(hub_name={self.hub_name!r}, address={self.address!r}, "
                f"max_queue_polling_interval={self.max_queue_polling_interval!r})")
