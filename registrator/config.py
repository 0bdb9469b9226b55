"""
Command line and environment configuration for the registrator sidecar.

Every flag falls back to an environment variable of the same name in upper
case with dashes replaced by underscores, e.g. ``--target-group-name`` reads
``TARGET_GROUP_NAME``.
"""

import argparse
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

# Constants
DEFAULT_WAIT_IN_SERVICE_TIMEOUT = 5 * 60  # seconds
DEFAULT_HOOK_TIMEOUT = 5  # seconds
DEFAULT_HEALTH_POLL_INTERVAL = 15  # seconds
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_DELAY = 1  # seconds
DEFAULT_KUBE2IAM_DELAY = 10  # seconds

_DURATION_UNITS = {
    'ms': 0.001,
    's': 1,
    'm': 60,
    'h': 3600,
}
_DURATION_PART = re.compile(r'(\d+(?:\.\d+)?)(ms|s|m|h)')

_TRUE = ('1', 'true', 'yes', 'on')
_FALSE = ('0', 'false', 'no', 'off')


def parse_duration(value) -> float:
    """
    Parse a duration such as ``5m``, ``1m30s``, ``500ms`` or ``30`` into seconds.
    """
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = str(value).strip()
        try:
            seconds = float(text)
        except ValueError:
            if not text or _DURATION_PART.sub('', text):
                raise ValueError(f"invalid duration: {value!r}")
            seconds = sum(float(number) * _DURATION_UNITS[unit]
                          for number, unit in _DURATION_PART.findall(text))
    if seconds < 0:
        raise ValueError(f"duration must not be negative: {value!r}")
    return seconds


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean: {value!r}")


@dataclass(frozen=True)
class HookConfig:
    command: str = ''
    timeout: float = DEFAULT_HOOK_TIMEOUT

    @property
    def enabled(self) -> bool:
        return bool(self.command.strip())


@dataclass(frozen=True)
class RegistratorConfig:
    target_group_name: str
    target_id: str = ''
    wait_in_service: bool = True
    wait_in_service_timeout: float = DEFAULT_WAIT_IN_SERVICE_TIMEOUT
    health_poll_interval: float = DEFAULT_HEALTH_POLL_INTERVAL
    pre_register: HookConfig = field(default_factory=HookConfig)
    post_register: HookConfig = field(default_factory=HookConfig)
    post_deregister: HookConfig = field(default_factory=HookConfig)
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    retry_delay: float = DEFAULT_RETRY_DELAY
    region: Optional[str] = None
    kube2iam: bool = False
    kube2iam_delay: float = DEFAULT_KUBE2IAM_DELAY
    status_port: int = 0
    log_level: str = 'INFO'


def _env_name(flag: str) -> str:
    return flag.lstrip('-').replace('-', '_').upper()


def _positive_int(value) -> int:
    number = int(value)
    if number < 1:
        raise ValueError(f"must be at least 1: {value!r}")
    return number


def _port(value) -> int:
    number = int(value)
    if not 0 <= number <= 65535:
        raise ValueError(f"port must be between 0 and 65535: {value!r}")
    return number


def _log_level(value) -> str:
    level = str(value).upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"unknown log level: {value!r}")
    return level


class _EnvParser:
    """Adds flags whose defaults come from the environment."""

    def __init__(self, parser: argparse.ArgumentParser, environ: Mapping[str, str]):
        self.parser = parser
        self.environ = environ

    def _default(self, flag, convert, default, env):
        name = env or _env_name(flag)
        raw = self.environ.get(name)
        if raw is None or raw == '':
            return default
        try:
            return convert(raw)
        except ValueError as e:
            self.parser.error(f"environment variable {name}: {str(e)}")

    def add(self, flag, convert, default, help, env=None):
        def checked(value):
            try:
                return convert(value)
            except ValueError as e:
                raise argparse.ArgumentTypeError(str(e))
        extra = {'nargs': '?', 'const': True} if convert is parse_bool else {}
        self.parser.add_argument(
            flag,
            type=checked,
            **extra,
            default=self._default(flag, convert, default, env),
            help=f"{help} (env: {env or _env_name(flag)})"
        )


def build_parser(environ: Mapping[str, str]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='nlb-registrator',
        description='Registers this pod as a target of an AWS load balancer target group '
                    'for the lifetime of the pod.'
    )
    env = _EnvParser(parser, environ)
    env.add('--target-id', str, '', 'Target ID to register in the target group, defaults to the pod IP')
    env.add('--target-group-name', str, '', 'Target group name to look for')
    env.add('--wait-in-service', parse_bool, True, 'Whether to wait for the target to become healthy')
    env.add('--wait-in-service-timeout', parse_duration, DEFAULT_WAIT_IN_SERVICE_TIMEOUT,
            'How long to wait for the target to become healthy')
    env.add('--health-poll-interval', parse_duration, DEFAULT_HEALTH_POLL_INTERVAL,
            'How often to poll target health while waiting')
    for hook, when in (('pre-register', 'before the target is registered with the target group'),
                       ('post-register', 'after the target is registered with the target group'),
                       ('post-deregister', 'after the target is deregistered from the target group')):
        env.add(f'--{hook}-command', str, '', f'Command to execute {when}')
        env.add(f'--{hook}-command-timeout', parse_duration, DEFAULT_HOOK_TIMEOUT,
                f'How long to wait for {hook}-command to finish')
    env.add('--retry-attempts', _positive_int, DEFAULT_RETRY_ATTEMPTS, 'Attempts for each AWS call')
    env.add('--retry-delay', parse_duration, DEFAULT_RETRY_DELAY,
            'Delay before the first retry, doubled on every retry')
    env.add('--region', str, None, 'AWS region', env='AWS_DEFAULT_REGION')
    env.add('--kube2iam', parse_bool, False, 'Whether the pod uses kube2iam')
    env.add('--kube2iam-delay', parse_duration, DEFAULT_KUBE2IAM_DELAY,
            'How long to wait for kube2iam credentials before creating the AWS session')
    env.add('--status-port', _port, 0, 'Port of the status server, 0 disables it')
    env.add('--log-level', _log_level, 'INFO', 'Log level')
    return parser


def parse_args(argv: Optional[Sequence[str]] = None,
               environ: Optional[Mapping[str, str]] = None) -> RegistratorConfig:
    """
    Build the configuration from ``argv`` and ``environ``.

    Exits with status 2 on invalid input, like any argparse program.
    """
    environ = os.environ if environ is None else environ
    parser = build_parser(environ)
    args = parser.parse_args(argv)
    if not args.target_group_name:
        parser.error("--target-group-name is required")

    return RegistratorConfig(
        target_group_name=args.target_group_name,
        target_id=args.target_id,
        wait_in_service=args.wait_in_service,
        wait_in_service_timeout=args.wait_in_service_timeout,
        health_poll_interval=args.health_poll_interval,
        pre_register=HookConfig(args.pre_register_command, args.pre_register_command_timeout),
        post_register=HookConfig(args.post_register_command, args.post_register_command_timeout),
        post_deregister=HookConfig(args.post_deregister_command, args.post_deregister_command_timeout),
        retry_attempts=args.retry_attempts,
        retry_delay=args.retry_delay,
        region=args.region or None,
        kube2iam=args.kube2iam,
        kube2iam_delay=args.kube2iam_delay,
        status_port=args.status_port,
        log_level=args.log_level,
    )
