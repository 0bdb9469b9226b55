"""
Lifecycle controller for a single target registration episode.

One process run is one episode: discover the target group, register the
target on a background thread, block until shutdown is requested, cancel
whatever registration work is still running, then deregister and run the
post-deregister hook. Only discovery failures are fatal; every later failure
is logged and the sequence continues so the target is always deregistered.
"""

import enum
import logging
import threading
from typing import Optional

from .backend import TargetGroupBackend
from .config import HookConfig, RegistratorConfig
from .errors import HookError, OperationCancelled, RegistratorError, TargetGroupDiscoveryError
from .hooks import HookRunner
from .retry import retry_operation

logger = logging.getLogger(__name__)


class LifecycleState(enum.Enum):
    DISCOVERING = 1
    REGISTERING = 2
    WAITING_HEALTHY = 3
    BLOCKED = 4
    CANCELLING = 5
    DEREGISTERING = 6
    DONE = 7
    FATAL_EXIT = 8


class RegistrationStatus(enum.Enum):
    PENDING = 'pending'
    REGISTERED = 'registered'
    FAILED = 'failed'
    CANCELLED = 'cancelled'


class LifecycleController:
    """
    Drives discovery, registration, shutdown and deregistration of one target.

    Args:
        config: Resolved configuration; ``config.target_id`` must be set
        backend: Target group backend
        hook_runner: Runs the configured hook commands
        shutdown_event: Set once when the process should shut down
        log: Logger to report to, defaults to this module's logger
    """

    def __init__(self, config: RegistratorConfig, backend: TargetGroupBackend,
                 hook_runner: HookRunner, shutdown_event: threading.Event,
                 log: Optional[logging.Logger] = None):
        self.config = config
        self.backend = backend
        self.hook_runner = hook_runner
        self.shutdown_event = shutdown_event
        self.logger = log or logger

        self.target_group_handle: Optional[str] = None
        self.registration_status = RegistrationStatus.PENDING
        self.registration_error: Optional[Exception] = None
        self.deregistration_error: Optional[Exception] = None

        # Scoped to the registration phase only; deregistration never sees it
        self._registration_cancel = threading.Event()
        self._registration_thread: Optional[threading.Thread] = None
        self._state = LifecycleState.DISCOVERING
        self._state_lock = threading.Lock()

    @property
    def state(self) -> LifecycleState:
        with self._state_lock:
            return self._state

    def _advance(self, state: LifecycleState) -> bool:
        """
        Move to ``state`` unless the episode is already past it.

        The registration thread and the main thread both report progress; a
        registration step finishing after shutdown began must not move the
        episode backwards.
        """
        with self._state_lock:
            if state.value <= self._state.value:
                return False
            self.logger.debug(f"Lifecycle state {self._state.name} -> {state.name}")
            self._state = state
            return True

    def _retry(self, operation_func, *args, cancel_event=None):
        return retry_operation(
            operation_func, *args,
            attempts=self.config.retry_attempts,
            delay=self.config.retry_delay,
            cancel_event=cancel_event
        )

    def run(self) -> None:
        """
        Run the whole episode and return once the target is deregistered.

        Raises:
            TargetGroupDiscoveryError: If the target group cannot be discovered;
                nothing has been registered in that case
        """
        self.discover()
        self.start_registration()
        self.wait_for_shutdown()
        self.cancel_registration()
        self.deregister()

    def discover(self) -> str:
        name = self.config.target_group_name
        self.logger.info(f"Discovering target group {name}")
        try:
            handle = self._retry(self.backend.resolve, name)
        except TargetGroupDiscoveryError:
            self._advance(LifecycleState.FATAL_EXIT)
            raise
        except Exception as e:
            self._advance(LifecycleState.FATAL_EXIT)
            raise TargetGroupDiscoveryError(f"Failed to discover target group {name}: {str(e)}") from e
        self.target_group_handle = handle
        self.logger.info(f"Discovered target group {name}: {handle}")
        return handle

    def start_registration(self) -> threading.Thread:
        if self.target_group_handle is None:
            raise RuntimeError("start_registration called before discover")
        self._advance(LifecycleState.REGISTERING)
        if self.shutdown_event.is_set():
            self._registration_cancel.set()
        self._registration_thread = threading.Thread(
            target=self._register,
            name='registration',
            daemon=True
        )
        self._registration_thread.start()
        return self._registration_thread

    def _register(self) -> None:
        endpoint = self.config.target_id
        handle = self.target_group_handle
        cancel = self._registration_cancel
        try:
            if cancel.is_set():
                raise OperationCancelled("shutdown requested before registration started")
            self.run_hook('pre-register', self.config.pre_register)
            self._retry(self.backend.register, handle, endpoint, cancel_event=cancel)

            if self.config.wait_in_service:
                self._advance(LifecycleState.WAITING_HEALTHY)
                self.backend.wait_healthy(
                    handle, endpoint, self.config.wait_in_service_timeout,
                    cancel_event=cancel
                )

            self.registration_status = RegistrationStatus.REGISTERED
            self.logger.info(f"Target {endpoint} is registered in target group {handle}")
            self.run_hook('post-register', self.config.post_register)
        except OperationCancelled as e:
            self.registration_status = RegistrationStatus.CANCELLED
            self.logger.info(f"Registration of {endpoint} stopped by shutdown: {str(e)}")
        except Exception as e:
            self.registration_status = RegistrationStatus.FAILED
            self.registration_error = e
            self.logger.error(f"Failed to register target {endpoint}: {str(e)}",
                              exc_info=not isinstance(e, RegistratorError))
        finally:
            self._advance(LifecycleState.BLOCKED)

    def wait_for_shutdown(self) -> None:
        self.logger.info("Awaiting signal for deregistration")
        self.shutdown_event.wait()

    def cancel_registration(self) -> None:
        """
        Cancel in-flight registration work and wait for the registration thread.

        A registration that already completed is left in place.
        """
        self._advance(LifecycleState.CANCELLING)
        self._registration_cancel.set()
        if self._registration_thread is not None:
            self._registration_thread.join()

    def deregister(self) -> None:
        """
        Deregister the target and run the post-deregister hook.

        Deregistration is retried but never cancelled; its failure is logged and
        the post-deregister hook still runs.
        """
        self._advance(LifecycleState.DEREGISTERING)
        endpoint = self.config.target_id
        try:
            self._retry(self.backend.deregister, self.target_group_handle, endpoint)
        except Exception as e:
            self.deregistration_error = e
            self.logger.error(f"Failed to deregister target {endpoint}: {str(e)}")
        self.run_hook('post-deregister', self.config.post_deregister)
        self._advance(LifecycleState.DONE)

    def run_hook(self, name: str, hook: HookConfig) -> bool:
        """
        Run a hook command if one is configured.

        Returns:
            bool: False if the hook failed, True otherwise
        """
        if not hook.enabled:
            return True
        self.logger.info(f"Executing {name} command: {hook.command}")
        try:
            output = self.hook_runner.run(hook.command, hook.timeout)
        except HookError as e:
            if e.output:
                self.logger.info(e.output)
            self.logger.error(f"{name} command failed: {str(e)}")
            return False
        except Exception as e:
            self.logger.error(f"{name} command could not be run: {str(e)}", exc_info=True)
            return False
        if output:
            self.logger.info(output)
        return True
