"""
Entry point of the registrator sidecar.
"""

import dataclasses
import logging
import sys
from typing import Optional, Sequence

from .aws.client import create_backend
from .config import parse_args
from .errors import ConfigurationError, TargetGroupDiscoveryError
from .hooks import HookRunner
from .kube import resolve_target_id
from .lifecycle import LifecycleController
from .signals import SignalBridge
from .status import start_status_server

logger = logging.getLogger(__name__)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Run one registration episode and return the process exit status.
    """
    config = parse_args(argv)
    logging.getLogger().setLevel(config.log_level)

    # Installed first so a signal during startup still leads to deregistration
    signals = SignalBridge()
    signals.install()

    try:
        config = dataclasses.replace(config, target_id=resolve_target_id(config.target_id))
    except ConfigurationError as e:
        logger.critical(str(e))
        return 1

    try:
        backend = create_backend(config)
    except Exception as e:
        logger.critical(f"Failed to create AWS session: {str(e)}")
        return 1

    controller = LifecycleController(config, backend, HookRunner(), signals.event)
    if config.status_port:
        start_status_server(controller, config.status_port)

    try:
        controller.run()
    except TargetGroupDiscoveryError as e:
        logger.critical(str(e))
        return 1
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == '__main__':
    run()
