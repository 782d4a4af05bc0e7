# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

import inspect
from functools import wraps
from typing import Any, Callable, Optional, TypeVar, Union

from durabletask_testhelpers.exceptions import ServiceNotFoundError

T = TypeVar('T')
ServiceKey = Union[type, str]

_MISSING = object()


class ServiceCollection:
    """A minimal singleton container used to substitute dependencies of functions under test.

    Functions wrapped with `inject` receive registered services for every parameter
    the caller did not supply, matched by annotation first and by parameter name second.

    Example:
        >>> services = ServiceCollection()
        >>> services.add_singleton(Injectable, MagicMock(spec=Injectable))
        >>> def execute(ctx, _, injectable: Injectable):
        ...     injectable.execute()
        >>> worker.add_activity(services.inject(execute))
    """

    def __init__(self):
        self._services: dict[ServiceKey, Any] = {}

    def add_singleton(self, key: ServiceKey, instance: Any) -> 'ServiceCollection':
        self._services[key] = instance
        return self

    def get_service(self, key: ServiceKey) -> Optional[Any]:
        return self._services.get(key)

    def get_required_service(self, key: ServiceKey) -> Any:
        if key not in self._services:
            raise ServiceNotFoundError(key)
        return self._services[key]

    def __contains__(self, key: ServiceKey) -> bool:
        return key in self._services

    def __len__(self) -> int:
        return len(self._services)

    def _resolve(self, param: inspect.Parameter) -> Any:
        annotation = param.annotation
        if annotation is not inspect.Parameter.empty and annotation in self._services:
            return self._services[annotation]
        if param.name in self._services:
            return self._services[param.name]
        if param.default is not inspect.Parameter.empty:
            return _MISSING
        raise ServiceNotFoundError(annotation if isinstance(annotation, type) else param.name)

    def _bind(self, signature: inspect.Signature, args, kwargs) -> inspect.BoundArguments:
        bound = signature.bind_partial(*args, **kwargs)
        for name, param in signature.parameters.items():
            if name in bound.arguments:
                continue
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue
            value = self._resolve(param)
            if value is not _MISSING:
                bound.arguments[name] = value
        return bound

    def inject(self, fn: Callable[..., T]) -> Callable[..., T]:
        """Wraps `fn` so that its unbound parameters are resolved from this collection."""
        signature = inspect.signature(fn)

        if inspect.iscoroutinefunction(fn):
            @wraps(fn)
            async def async_injected(*args, **kwargs):
                bound = self._bind(signature, args, kwargs)
                return await fn(*bound.args, **bound.kwargs)
            return async_injected  # type: ignore

        @wraps(fn)
        def injected(*args, **kwargs):
            bound = self._bind(signature, args, kwargs)
            return fn(*bound.args, **bound.kwargs)

        return injected
