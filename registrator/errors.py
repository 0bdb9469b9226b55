"""
Exception types raised by the registrator sidecar.
"""


class RegistratorError(Exception):
    """Base class for all registrator errors."""


class ConfigurationError(RegistratorError):
    """Raised when the sidecar cannot be configured."""


class NonRetryableError(RegistratorError):
    """Marker base for errors that must never be retried."""


class TargetGroupUnresolvedError(NonRetryableError):
    def __init__(self, operation: str):
        super().__init__(
            f"Cannot {operation} target: target group handle is empty, "
            f"the target group must be discovered first"
        )
        self.operation = operation


class TargetGroupDiscoveryError(RegistratorError):
    """Raised when the target group name cannot be resolved to exactly one group."""


class TargetGroupNotFoundError(TargetGroupDiscoveryError):
    def __init__(self, name: str):
        super().__init__(f"Target group {name} not found")
        self.name = name


class AmbiguousTargetGroupError(TargetGroupDiscoveryError):
    def __init__(self, name: str, count: int):
        super().__init__(f"Unexpected count of target groups named {name}: {count}")
        self.name = name
        self.count = count


class BackendError(RegistratorError):
    """Raised when a target group backend call fails."""


class HealthWaitTimeoutError(RegistratorError):
    def __init__(self, endpoint: str, timeout: float):
        super().__init__(f"Target {endpoint} did not become healthy within {timeout}s")
        self.endpoint = endpoint
        self.timeout = timeout


class OperationCancelled(RegistratorError):
    """Raised when an operation is abandoned because shutdown was requested."""


class HookError(RegistratorError):
    def __init__(self, command: str, returncode: int, output: str = ""):
        super().__init__(f"Command {command!r} exited with status {returncode}")
        self.command = command
        self.returncode = returncode
        self.output = output


class HookTimeoutError(HookError):
    def __init__(self, command: str, timeout: float, output: str = ""):
        RegistratorError.__init__(self, f"Command {command!r} timed out after {timeout}s")
        self.command = command
        self.returncode = None
        self.timeout = timeout
        self.output = output
