from typing import Any, Dict, List, Optional
import logging
import threading
import time
from botocore.exceptions import BotoCoreError, ClientError
from ..backend import TargetGroupBackend
from ..errors import (
    AmbiguousTargetGroupError,
    BackendError,
    HealthWaitTimeoutError,
    OperationCancelled,
    TargetGroupNotFoundError,
    TargetGroupUnresolvedError,
)

logger = logging.getLogger(__name__)

# Matches the delay of the ELBv2 target_in_service waiter
DEFAULT_POLL_INTERVAL = 15  # seconds

def new_targets(target_id: str) -> List[Dict[str, str]]:
    return [{'Id': target_id}]

def error_code(e: ClientError) -> str:
    return e.response.get('Error', {}).get('Code', '')

class ElbV2TargetGroupBackend(TargetGroupBackend):
    """
    Target group backend for AWS Elastic Load Balancing v2 (ALB/NLB).

    The target group handle is the target group ARN.
    """

    def __init__(self, elbv2: Any, poll_interval: float = DEFAULT_POLL_INTERVAL):
        self.elbv2 = elbv2
        self.poll_interval = poll_interval

    def resolve(self, name: str) -> str:
        """
        Get the ARN of a target group by its name.

        Args:
            name: Name of the target group

        Returns:
            str: ARN of the target group

        Raises:
            TargetGroupNotFoundError: If no target group has this name
            AmbiguousTargetGroupError: If more than one target group has this name
            BackendError: If the AWS call fails
        """
        try:
            response = self.elbv2.describe_target_groups(Names=[name])
        except ClientError as e:
            if error_code(e) == 'TargetGroupNotFound':
                raise TargetGroupNotFoundError(name) from e
            raise BackendError(f"Failed to describe target group {name}: {str(e)}") from e
        except BotoCoreError as e:
            raise BackendError(f"Failed to describe target group {name}: {str(e)}") from e

        target_groups = response.get('TargetGroups', [])
        if not target_groups:
            raise TargetGroupNotFoundError(name)
        if len(target_groups) != 1:
            raise AmbiguousTargetGroupError(name, len(target_groups))
        return target_groups[0]['TargetGroupArn']

    def register(self, handle: str, endpoint: str) -> None:
        if not handle:
            raise TargetGroupUnresolvedError('register')
        logger.info(f"Registering {endpoint} as target to {handle}")
        try:
            self.elbv2.register_targets(
                TargetGroupArn=handle,
                Targets=new_targets(endpoint)
            )
        except (ClientError, BotoCoreError) as e:
            raise BackendError(f"Failed to register target {endpoint}: {str(e)}") from e

    def target_state(self, handle: str, endpoint: str) -> Optional[str]:
        """
        Get the health state of a target, or None if AWS does not know it yet.
        """
        try:
            response = self.elbv2.describe_target_health(
                TargetGroupArn=handle,
                Targets=new_targets(endpoint)
            )
        except ClientError as e:
            # The target_in_service waiter keeps polling on this code
            if error_code(e) == 'InvalidInstance':
                return None
            raise BackendError(f"Failed to describe health of target {endpoint}: {str(e)}") from e
        except BotoCoreError as e:
            raise BackendError(f"Failed to describe health of target {endpoint}: {str(e)}") from e

        descriptions = response.get('TargetHealthDescriptions', [])
        if not descriptions:
            return None
        return descriptions[0].get('TargetHealth', {}).get('State')

    def wait_healthy(self, handle: str, endpoint: str, timeout: float,
                     cancel_event: Optional[threading.Event] = None) -> None:
        if not handle:
            raise TargetGroupUnresolvedError('wait for')
        logger.info(f"Waiting for {endpoint} to be in service in target group")
        deadline = time.monotonic() + timeout
        # Polled by hand: the target_in_service waiter cannot observe cancel_event
        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise OperationCancelled(f"Health wait for {endpoint} cancelled")
            state = self.target_state(handle, endpoint)
            if state == 'healthy':
                return
            logger.debug(f"Target {endpoint} state is {state}")
            remaining = deadline - time.monotonic()
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
        logger.info(f"Deregistering {endpoint} from {handle}")
        try:
            self.elbv2.deregister_targets(
                TargetGroupArn=handle,
                Targets=new_targets(endpoint)
            )
        except (ClientError, BotoCoreError) as e:
            raise BackendError(f"Failed to deregister target {endpoint}: {str(e)}") from e
        logger.info(f"Target {endpoint} is marked as deregistered in target group")
