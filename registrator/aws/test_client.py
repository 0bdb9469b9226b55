import unittest
from unittest.mock import MagicMock, patch
import os
from botocore.exceptions import NoCredentialsError
from ..config import RegistratorConfig
from .client import aws_config, create_backend, get_elbv2_client, get_session
from .target_group import ElbV2TargetGroupBackend

class TestAWSClient(unittest.TestCase):
    def test_get_session_with_region(self):
        """Test that the session is created for the explicit region"""
        mock_session = MagicMock()
        mock_session.get_credentials.return_value = MagicMock()

        with patch('boto3.Session', return_value=mock_session) as mock_session_cls, \
             patch.dict(os.environ, {}, clear=True):
            session = get_session(region="us-west-2")
            self.assertIs(session, mock_session)
            mock_session_cls.assert_called_once_with(region_name="us-west-2")
            # Verify STS regional endpoints are configured
            self.assertEqual(os.environ.get('AWS_STS_REGIONAL_ENDPOINTS'), 'regional')

    def test_get_session_default_region(self):
        """Test session creation with region from environment"""
        mock_session = MagicMock()
        mock_session.get_credentials.return_value = MagicMock()

        with patch('boto3.Session', return_value=mock_session) as mock_session_cls, \
             patch.dict(os.environ, {'AWS_DEFAULT_REGION': 'us-east-1'}, clear=True):
            get_session()
            mock_session_cls.assert_called_once_with(region_name="us-east-1")

    def test_sts_regional_endpoints_not_set_without_region(self):
        """Test that STS regional endpoints are not configured without a region"""
        mock_session = MagicMock()
        mock_session.get_credentials.return_value = MagicMock()

        with patch('boto3.Session', return_value=mock_session), \
             patch.dict(os.environ, {}, clear=True):
            get_session()
            self.assertNotIn('AWS_STS_REGIONAL_ENDPOINTS', os.environ)

    def test_get_session_without_credentials(self):
        """Test handling when no credentials are found"""
        mock_session = MagicMock()
        mock_session.get_credentials.return_value = None

        with patch('boto3.Session', return_value=mock_session):
            with self.assertRaises(NoCredentialsError):
                get_session(region="us-west-2")

    def test_get_elbv2_client(self):
        mock_session = MagicMock()

        with patch('registrator.aws.client.get_session', return_value=mock_session):
            client = get_elbv2_client(region="us-west-2")

        mock_session.client.assert_called_once_with('elbv2', config=aws_config)
        self.assertIs(client, mock_session.client.return_value)

class TestCreateBackend(unittest.TestCase):
    def setUp(self):
        patcher = patch('registrator.retry.time')
        self.mock_retry_time = patcher.start()
        self.addCleanup(patcher.stop)

    def test_retries_session_setup(self):
        mock_elbv2 = MagicMock()
        config = RegistratorConfig(target_group_name='web', region='us-west-2', health_poll_interval=7)

        with patch('registrator.aws.client.get_elbv2_client',
                   side_effect=[NoCredentialsError(), mock_elbv2]) as mock_get_client:
            backend = create_backend(config)

        self.assertIsInstance(backend, ElbV2TargetGroupBackend)
        self.assertIs(backend.elbv2, mock_elbv2)
        self.assertEqual(backend.poll_interval, 7)
        self.assertEqual(mock_get_client.call_count, 2)
        mock_get_client.assert_called_with(region='us-west-2')
        self.mock_retry_time.sleep.assert_called_once_with(1)

    def test_kube2iam_delay(self):
        config = RegistratorConfig(target_group_name='web', kube2iam=True, kube2iam_delay=10)

        with patch('registrator.aws.client.get_elbv2_client'), \
             patch('registrator.aws.client.time') as mock_time:
            create_backend(config)

        mock_time.sleep.assert_called_once_with(10)

if __name__ == '__main__':
    unittest.main()
