"""
Finds the IP of the pod this sidecar runs in.
"""

import logging
import os
from typing import Mapping, Optional

import kubernetes

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def load_kube_config() -> None:
    try:
        kubernetes.config.load_incluster_config()
    except kubernetes.config.ConfigException:
        # Fallback to kubeconfig for local development
        kubernetes.config.load_kube_config()


def get_pod_ip(name: str, namespace: str) -> str:
    """
    Read the pod IP from the Kubernetes API.

    Raises:
        ConfigurationError: If the pod cannot be read or has no IP yet
    """
    try:
        load_kube_config()
        pod = kubernetes.client.CoreV1Api().read_namespaced_pod(name=name, namespace=namespace)
    except kubernetes.config.ConfigException as e:
        raise ConfigurationError(f"Cannot load Kubernetes configuration: {str(e)}") from e
    except kubernetes.client.rest.ApiException as e:
        raise ConfigurationError(f"Cannot read pod {namespace}/{name}: {e.status} {e.reason}") from e

    pod_ip = pod.status.pod_ip if pod.status else None
    if not pod_ip:
        raise ConfigurationError(f"Pod {namespace}/{name} has no IP assigned")
    return pod_ip


def resolve_target_id(target_id: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """
    Return ``target_id``, or the pod IP when it is empty.

    The pod IP comes from ``POD_IP`` (downward API) when set, otherwise from the
    Kubernetes API using ``POD_NAME`` and ``POD_NAMESPACE``.
    """
    if target_id:
        return target_id

    environ = os.environ if environ is None else environ
    if environ.get('POD_IP'):
        return environ['POD_IP']

    name = environ.get('POD_NAME') or environ.get('HOSTNAME')
    namespace = environ.get('POD_NAMESPACE')
    if not name or not namespace:
        raise ConfigurationError(
            "No target id given; set --target-id, POD_IP, or POD_NAME and POD_NAMESPACE"
        )
    logger.info(f"Looking up IP of pod {namespace}/{name}")
    return get_pod_ip(name, namespace)
