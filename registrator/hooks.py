"""
Runs lifecycle hook commands through ``/bin/sh -c``.
"""

import logging
import os
import signal
import subprocess

from .errors import HookError, HookTimeoutError

logger = logging.getLogger(__name__)

SHELL = '/bin/sh'
KILL_GRACE = 1  # seconds to collect output after a timeout kill


class HookRunner:
    """
    Executes a shell command with a timeout and returns its combined output.

    The command runs in its own process group so that a timeout kills the whole
    tree the shell started, not only the shell.
    """

    def __init__(self, shell: str = SHELL):
        self.shell = shell

    def run(self, command: str, timeout: float) -> str:
        """
        Run ``command`` and return its combined stdout and stderr.

        Raises:
            HookTimeoutError: If the command does not finish within ``timeout``
            HookError: If the command exits with a non-zero status
        """
        process = subprocess.Popen(
            [self.shell, '-c', command],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )
        try:
            output, _ = process.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            self._kill(process)
            try:
                output, _ = process.communicate(timeout=KILL_GRACE)
            except subprocess.TimeoutExpired:
                # A detached grandchild still holds the pipe
                process.stdout.close()
                process.wait()
                output = b''
            raise HookTimeoutError(command, timeout, self._decode(output))

        output = self._decode(output)
        if process.returncode != 0:
            raise HookError(command, process.returncode, output)
        return output

    @staticmethod
    def _kill(process: subprocess.Popen) -> None:
        try:
            os.killpg(process.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass

    @staticmethod
    def _decode(output) -> str:
        return (output or b'').decode('utf-8', errors='replace')
