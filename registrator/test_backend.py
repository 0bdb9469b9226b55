import unittest
import threading
from .backend import InMemoryTargetGroupBackend
from .errors import (
    AmbiguousTargetGroupError,
    BackendError,
    HealthWaitTimeoutError,
    OperationCancelled,
    TargetGroupNotFoundError,
    TargetGroupUnresolvedError,
)

class TestInMemoryTargetGroupBackend(unittest.TestCase):
    def setUp(self):
        self.backend = InMemoryTargetGroupBackend(groups={
            'web': ['arn:tg/web'],
            'dup': ['arn:tg/dup-1', 'arn:tg/dup-2'],
        })

    def test_resolve(self):
        self.assertEqual(self.backend.resolve('web'), 'arn:tg/web')

    def test_resolve_not_found(self):
        with self.assertRaises(TargetGroupNotFoundError):
            self.backend.resolve('missing')

    def test_resolve_ambiguous(self):
        with self.assertRaises(AmbiguousTargetGroupError) as context:
            self.backend.resolve('dup')
        self.assertEqual(context.exception.count, 2)

    def test_register_and_deregister_are_idempotent(self):
        self.backend.register('arn:tg/web', '10.0.0.1')
        self.backend.register('arn:tg/web', '10.0.0.1')
        self.assertTrue(self.backend.is_registered('arn:tg/web', '10.0.0.1'))

        self.backend.deregister('arn:tg/web', '10.0.0.1')
        self.backend.deregister('arn:tg/web', '10.0.0.1')
        self.assertFalse(self.backend.is_registered('arn:tg/web', '10.0.0.1'))
        self.assertEqual(len(self.backend.calls_to('deregister')), 2)

    def test_unresolved_handle(self):
        with self.assertRaises(TargetGroupUnresolvedError):
            self.backend.register(None, '10.0.0.1')
        with self.assertRaises(TargetGroupUnresolvedError):
            self.backend.deregister('', '10.0.0.1')

    def test_fail_next_raises_queued_errors_in_order(self):
        self.backend.fail_next('register', BackendError("first"), BackendError("second"))

        with self.assertRaisesRegex(BackendError, "first"):
            self.backend.register('arn:tg/web', '10.0.0.1')
        with self.assertRaisesRegex(BackendError, "second"):
            self.backend.register('arn:tg/web', '10.0.0.1')
        self.backend.register('arn:tg/web', '10.0.0.1')
        self.assertTrue(self.backend.is_registered('arn:tg/web', '10.0.0.1'))

    def test_wait_healthy_returns_once_healthy(self):
        self.backend.register('arn:tg/web', '10.0.0.1')
        self.backend.wait_healthy('arn:tg/web', '10.0.0.1', timeout=1)

    def test_wait_healthy_times_out(self):
        self.backend.healthy_after = 60
        self.backend.register('arn:tg/web', '10.0.0.1')

        with self.assertRaises(HealthWaitTimeoutError):
            self.backend.wait_healthy('arn:tg/web', '10.0.0.1', timeout=0.05)

    def test_wait_healthy_cancelled(self):
        self.backend.healthy_after = 60
        self.backend.register('arn:tg/web', '10.0.0.1')
        cancel = threading.Event()
        cancel.set()

        with self.assertRaises(OperationCancelled):
            self.backend.wait_healthy('arn:tg/web', '10.0.0.1', timeout=300, cancel_event=cancel)

if __name__ == '__main__':
    unittest.main()
