"""
Target group backend contract and an in-memory implementation.
"""

import abc
import collections
import threading
import time
from typing import Deque, Dict, List, Optional, Tuple

from .errors import (
    AmbiguousTargetGroupError,
    HealthWaitTimeoutError,
    OperationCancelled,
    TargetGroupNotFoundError,
    TargetGroupUnresolvedError,
)


class TargetGroupBackend(abc.ABC):
    """
    Operations the lifecycle controller needs from a load balancer.

    All operations must be safe to retry: registering a registered endpoint or
    deregistering an absent one is not an error.
    """

    @abc.abstractmethod
    def resolve(self, name: str) -> str:
        """
        Resolve a target group name to its handle.

        Raises:
            TargetGroupNotFoundError: If no group has this name
            AmbiguousTargetGroupError: If more than one group has this name
            BackendError: If the lookup itself fails
        """

    @abc.abstractmethod
    def register(self, handle: str, endpoint: str) -> None:
        """Register ``endpoint`` in the target group ``handle``."""

    @abc.abstractmethod
    def wait_healthy(self, handle: str, endpoint: str, timeout: float,
                     cancel_event: Optional[threading.Event] = None) -> None:
        """
        Block until ``endpoint`` is healthy in the target group.

        Raises:
            HealthWaitTimeoutError: If the endpoint is not healthy within ``timeout``
            OperationCancelled: If ``cancel_event`` is set while waiting
            BackendError: If polling the target health fails
        """

    @abc.abstractmethod
    def deregister(self, handle: str, endpoint: str) -> None:
        """Deregister ``endpoint`` from the target group ``handle``."""


class InMemoryTargetGroupBackend(TargetGroupBackend):
    """
    Backend keeping target groups in a dict, for tests and dry runs.

    ``groups`` maps a group name to the handles carrying that name; a name listed
    with two handles resolves as ambiguous. Registered endpoints become healthy
    ``healthy_after`` seconds after registration. Exceptions queued with
    ``fail_next`` are raised by the named operation, one per call, before it does
    any work.
    """

    def __init__(self, groups: Optional[Dict[str, List[str]]] = None,
                 healthy_after: float = 0.0, poll_interval: float = 0.01):
        self.groups = dict(groups or {})
        self.healthy_after = healthy_after
        self.poll_interval = poll_interval
        self.calls: List[Tuple[str, tuple]] = []
        self.targets: Dict[str, Dict[str, float]] = collections.defaultdict(dict)
        self._failures: Dict[str, Deque[Exception]] = collections.defaultdict(collections.deque)
        self._lock = threading.Lock()

    def fail_next(self, operation: str, *errors: Exception) -> None:
        with self._lock:
            self._failures[operation].extend(errors)

    def calls_to(self, operation: str) -> List[tuple]:
        with self._lock:
            return [args for op, args in self.calls if op == operation]

    def _record(self, operation: str, *args) -> None:
        with self._lock:
            self.calls.append((operation, args))
            failures = self._failures[operation]
            error = failures.popleft() if failures else None
        if error is not None:
            raise error

    def resolve(self, name: str) -> str:
        self._record('resolve', name)
        handles = self.groups.get(name, [])
        if not handles:
            raise TargetGroupNotFoundError(name)
        if len(handles) > 1:
            raise AmbiguousTargetGroupError(name, len(handles))
        return handles[0]

    def register(self, handle: str, endpoint: str) -> None:
        if not handle:
            raise TargetGroupUnresolvedError('register')
        self._record('register', handle, endpoint)
        with self._lock:
            self.targets[handle].setdefault(endpoint, time.monotonic())

    def is_registered(self, handle: str, endpoint: str) -> bool:
        with self._lock:
            return endpoint in self.targets.get(handle, {})

    def wait_healthy(self, handle: str, endpoint: str, timeout: float,
                     cancel_event: Optional[threading.Event] = None) -> None:
        self._record('wait_healthy', handle, endpoint, timeout)
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                registered_at = self.targets.get(handle, {}).get(endpoint)
            now = time.monotonic()
            if registered_at is not None and now - registered_at >= self.healthy_after:
                return
            remaining = deadline - now
            if remaining <= 0:
                raise HealthWaitTimeoutError(endpoint, timeout)
            pause = min(self.poll_interval, remaining)
            if cancel_event is None:
                time.sleep(pause)
            elif cancel_event.wait(pause):
                raise OperationCancelled(f"Health wait for {endpoint} cancelled")

    def deregister(self, handle: str, endpoint: str) -> None:
        if not handle:
            raise TargetGroupUnresolvedError('deregister')
        self._record('deregister', handle, endpoint)
        with self._lock:
            self.targets.get(handle, {}).pop(endpoint, None)
