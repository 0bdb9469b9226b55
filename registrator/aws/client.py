import boto3
from botocore.config import Config
from botocore.exceptions import NoCredentialsError
import logging
import os
import time

from ..retry import retry_operation
from .target_group import ElbV2TargetGroupBackend

# Constants
AWS_MAX_ATTEMPTS = 3

# Configure AWS client with retries
aws_config = Config(
    retries=dict(
        max_attempts=AWS_MAX_ATTEMPTS
    )
)

logger = logging.getLogger(__name__)

def get_session(region=None):
    """Get a boto3 session using the credential chain.

    The chain will try:
    1. IRSA (IAM Roles for Service Accounts)
    2. kube2iam / EC2 Instance Profile (Node IAM Role)
    3. Environment variables
    4. Shared credentials file

    The session keeps refreshable credentials refreshable, which matters for a
    sidecar that deregisters hours after it started.

    Args:
        region (str, optional): AWS region to use. If not provided, uses default region.

    Returns:
        boto3.Session: session with credentials

    Raises:
        botocore.exceptions.NoCredentialsError: If no credentials are found
    """
    region = region or os.environ.get('AWS_DEFAULT_REGION')
    if region:
        # Use regional STS endpoints for IRSA
        os.environ.setdefault('AWS_STS_REGIONAL_ENDPOINTS', 'regional')

    session = boto3.Session(region_name=region) if region else boto3.Session()
    if session.get_credentials() is None:
        logger.warning("No AWS credentials found in the credential chain")
        raise NoCredentialsError()
    return session

def get_elbv2_client(region=None):
    """Get AWS ELBv2 client with retry configuration.

    Args:
        region (str, optional): AWS region to use. If not provided, uses default region.

    Returns:
        boto3.client: AWS ELBv2 client
    """
    return get_session(region).client('elbv2', config=aws_config)

def create_backend(config):
    """Build the ELBv2 target group backend for ``config``.

    Session setup is retried with backoff but is not cancellable.
    """
    if config.kube2iam:
        logger.info(f"Give some time for kube2iam to setup temporary security credentials. "
                    f"(Sleeping for {config.kube2iam_delay} seconds)")
        time.sleep(config.kube2iam_delay)

    elbv2 = retry_operation(
        get_elbv2_client,
        region=config.region,
        attempts=config.retry_attempts,
        delay=config.retry_delay
    )
    return ElbV2TargetGroupBackend(elbv2, poll_interval=config.health_poll_interval)
