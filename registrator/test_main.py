import unittest
from unittest.mock import MagicMock, patch
import threading
from .backend import InMemoryTargetGroupBackend
from .errors import ConfigurationError
from .main import main
from .test_lifecycle import TARGET_GROUP_ARN, TARGET_ID

ARGV = ["--target-group-name", "web", "--target-id", TARGET_ID, "--retry-delay", "0"]

class TestMain(unittest.TestCase):
    def setUp(self):
        self.backend = InMemoryTargetGroupBackend(groups={'web': [TARGET_GROUP_ARN]})
        self.signals = MagicMock()
        self.signals.event = threading.Event()
        self.signals.event.set()

        patchers = [
            patch('registrator.main.SignalBridge', return_value=self.signals),
            patch('registrator.main.create_backend', return_value=self.backend),
            patch('registrator.main.logging'),
        ]
        self.mocks = [patcher.start() for patcher in patchers]
        for patcher in patchers:
            self.addCleanup(patcher.stop)
        self.mock_create_backend = self.mocks[1]

    def test_runs_episode_and_exits_zero(self):
        self.assertEqual(main(ARGV), 0)

        self.signals.install.assert_called_once()
        self.assertEqual(self.backend.calls_to('register'), [])
        self.assertEqual(self.backend.calls_to('deregister'), [(TARGET_GROUP_ARN, TARGET_ID)])

    def test_discovery_failure_exits_non_zero(self):
        self.backend.groups = {}

        self.assertEqual(main(ARGV), 1)
        self.assertEqual(self.backend.calls_to('register'), [])
        self.assertEqual(self.backend.calls_to('deregister'), [])

    def test_session_failure_exits_non_zero(self):
        self.mock_create_backend.side_effect = RuntimeError("no credentials")

        self.assertEqual(main(ARGV), 1)

    def test_target_id_failure_exits_before_aws(self):
        with patch('registrator.main.resolve_target_id', side_effect=ConfigurationError("no pod")):
            self.assertEqual(main(["--target-group-name", "web"]), 1)

        self.mock_create_backend.assert_not_called()

    def test_starts_status_server_when_port_given(self):
        with patch('registrator.main.start_status_server') as mock_start:
            self.assertEqual(main(ARGV + ["--status-port", "8080"]), 0)

        mock_start.assert_called_once()
        self.assertEqual(mock_start.call_args[0][1], 8080)

if __name__ == '__main__':
    unittest.main()
