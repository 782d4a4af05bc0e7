# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from typing import Sequence

from durabletask.client import OrchestrationState


class TestHelpersError(Exception):
    """Base class for all errors raised by the test helpers."""
    __test__ = False


class HostConfigurationError(TestHelpersError):
    pass


class FunctionNotFoundError(TestHelpersError):
    def __init__(self, name: str):
        super().__init__(f"No starter function named '{name}' is registered with the host.")
        self._name = name

    @property
    def name(self) -> str:
        return self._name


class ServiceNotFoundError(TestHelpersError):
    def __init__(self, key):
        label = key if isinstance(key, str) else getattr(key, "__qualname__", repr(key))
        super().__init__(f"No service registered for '{label}'.")
        self._key = key

    @property
    def key(self):
        return self._key


class ReadyTimeoutError(TestHelpersError, TimeoutError):
    """Raised when orchestrations are still running after the timeout elapsed."""

    def __init__(self, timeout: float, pending: Sequence[OrchestrationState]):
        ids = ", ".join(f"'{s.name}' ({s.instance_id})" for s in pending)
        super().__init__(f"Timed-out after {timeout}s waiting for orchestrations to complete: {ids}")
        self._timeout = timeout
        self._pending = list(pending)

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def pending(self) -> list[OrchestrationState]:
        return self._pending


class OrchestrationsFailedError(TestHelpersError):
    """Raised by `JobHost.throw_if_failed` when one or more orchestrations failed."""

    def __init__(self, failures: Sequence[OrchestrationState]):
        lines = []
        for state in failures:
            details = state.failure_details
            reason = f"[{details.error_type}] {details.message}" if details else "no failure details"
            lines.append(f"'{state.name}' ({state.instance_id}): {reason}")
        super().__init__(f"{len(lines)} orchestration(s) failed:\n" + "\n".join(lines))
        self._failures = list(failures)

    @property
    def failures(self) -> list[OrchestrationState]:
        return self._failures
