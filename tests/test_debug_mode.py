"""
Tests for debug mode functionality.
"""

import unittest
import os
import sys
from io import StringIO
from unittest.mock import patch
from ipgate.config import config
from ipgate.debug import debug_logger, debug_dataset_method
from ipgate.datasets.base import BaseDataset, RangeDataset, as_text
from ipgate.datasets.loader import LoadReport
from ipgate.datasets.range_table import RangeEntry, RangeTable
from ipgate.validator import AddressNormalizer


class TestDebugConfiguration(unittest.TestCase):
    """Test debug configuration functionality."""

    def test_debug_mode_disabled_by_default(self):
        """Test that debug mode is disabled by default."""
        with patch.dict(os.environ, {}, clear=True):
            self.assertFalse(config.is_debug_mode())
            self.assertEqual(config.get_debug_level(), 'off')

    def test_debug_mode_enabled_by_environment(self):
        """Test debug mode enabled by environment variable."""
        test_cases = [
            ('true', True),
            ('1', True),
            ('yes', True),
            ('on', True),
            ('false', False),
            ('0', False),
            ('no', False),
            ('off', False),
        ]

        for value, expected in test_cases:
            with patch.dict(os.environ, {'IPGATE_DEBUG': value}):
                self.assertEqual(config.is_debug_mode(), expected)

    def test_debug_levels(self):
        """Test different debug levels."""
        with patch.dict(os.environ, {'IPGATE_DEBUG': 'true'}):
            os.environ.pop('IPGATE_DEBUG_LEVEL', None)
            self.assertEqual(config.get_debug_level(), 'basic')

            for level in ['basic', 'detailed', 'verbose']:
                with patch.dict(os.environ, {'IPGATE_DEBUG_LEVEL': level}):
                    self.assertEqual(config.get_debug_level(), level)

            with patch.dict(os.environ, {'IPGATE_DEBUG_LEVEL': 'invalid'}):
                self.assertEqual(config.get_debug_level(), 'basic')


class TestDebugLogger(unittest.TestCase):
    """Test debug logger functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.original_stderr = sys.stderr
        self.captured_stderr = StringIO()
        sys.stderr = self.captured_stderr

    def tearDown(self):
        """Clean up test fixtures."""
        sys.stderr = self.original_stderr

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'basic'})
    def test_basic_logging(self):
        """Test basic debug logging."""
        debug_logger.log('basic', 'Test message')

        output = self.captured_stderr.getvalue()
        self.assertIn('[DEBUG', output)
        self.assertIn('Test message', output)

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'false'})
    def test_logging_disabled_when_debug_off(self):
        """Test that logging is disabled when debug mode is off."""
        debug_logger.log('basic', 'Test message')

        self.assertEqual(self.captured_stderr.getvalue(), '')

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'basic'})
    def test_log_level_filtering(self):
        """Test that higher level messages are filtered out."""
        debug_logger.log('detailed', 'Detailed message')
        debug_logger.log('verbose', 'Verbose message')

        output = self.captured_stderr.getvalue()
        self.assertNotIn('Detailed message', output)
        self.assertNotIn('Verbose message', output)

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'detailed'})
    def test_detailed_logging_with_data(self):
        """Test detailed logging with data."""
        debug_logger.log('detailed', 'Test with data', {'key1': 'value1', 'key2': {'nested': 'data'}})

        output = self.captured_stderr.getvalue()
        self.assertIn('Test with data', output)
        self.assertIn('key1: value1', output)
        self.assertIn('key2: 1 items', output)

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'verbose'})
    def test_verbose_logging_dumps_json(self):
        """Test verbose logging prints data as JSON."""
        debug_logger.log('verbose', 'Verbose data', {'ranges': [1, 2]})

        output = self.captured_stderr.getvalue()
        self.assertIn('"ranges": [', output)

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'basic'})
    def test_dataset_call_logging(self):
        """Test dataset call logging."""
        debug_logger.log_dataset_call('IP2Location', 'lookup', ('8.8.8.8', 'extra', 'more'))

        output = self.captured_stderr.getvalue()
        self.assertIn('Dataset call #', output)
        self.assertIn('IP2Location.lookup(8.8.8.8, extra, ... (+1 more))', output)

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'basic'})
    def test_dataset_result_logging(self):
        """Test dataset result logging."""
        debug_logger.log_dataset_result('MaxMind', 'lookup', {'country': 'Japan', 'city': 'Tokyo'}, 0.0005)

        output = self.captured_stderr.getvalue()
        self.assertIn('Dataset result: MaxMind.lookup', output)
        self.assertIn('dict(2 keys)', output)
        self.assertIn('0.500ms', output)

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'basic'})
    def test_dataset_miss_logging(self):
        """Test a lookup miss is summarized."""
        debug_logger.log_dataset_result('MaxMind', 'lookup', None, 0.001)

        self.assertIn('MaxMind.lookup -> no match', self.captured_stderr.getvalue())

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'basic'})
    def test_dataset_error_logging(self):
        """Test dataset error logging."""
        debug_logger.log_dataset_error('MaxMind', 'lookup', ValueError("Test error message"), 0.002)

        output = self.captured_stderr.getvalue()
        self.assertIn('Dataset error: MaxMind.lookup', output)
        self.assertIn('ValueError: Test error message', output)
        self.assertIn('2.000ms', output)

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'basic'})
    def test_load_report_logging(self):
        """Test dataset load reports are logged."""
        debug_logger.log_load_report(LoadReport('data/x.csv', LoadReport.LOADED, 10, 2, 1))

        output = self.captured_stderr.getvalue()
        self.assertIn('Loaded data/x.csv: loaded, 10 entries, 2 skipped, 1 overlapping', output)

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'basic'})
    def test_resolution_logging(self):
        """Test resolution start/complete logging."""
        debug_logger.log_resolution_start('8.8.8.8')
        debug_logger.log_resolution_complete('8.8.8.8', 0.0015, 3)

        output = self.captured_stderr.getvalue()
        self.assertIn('Resolving: 8.8.8.8', output)
        self.assertIn('Resolved 8.8.8.8: 3 datasets matched, 1.500ms total', output)

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'detailed',
                             'IPGATE_DATA_DIR': '/srv/ipgate'})
    def test_config_info_logging(self):
        """Test configuration is printed in detailed mode."""
        debug_logger.log_config_info()

        output = self.captured_stderr.getvalue()
        self.assertIn('Current configuration:', output)
        self.assertIn('data_dir: /srv/ipgate', output)


class MockDataset(BaseDataset):
    """Mock dataset for testing the debug decorator."""

    def __init__(self):
        super().__init__('mock', 'MockDataset')

    def lookup(self, address):
        return None

    @debug_dataset_method
    def test_method(self, arg1, arg2=None):
        """Test method for debug decorator."""
        return {'arg1': arg1, 'arg2': arg2}

    @debug_dataset_method
    def error_method(self):
        """Test method that raises an error."""
        raise ValueError("Test error")


class TestDebugDecorator(unittest.TestCase):
    """Test debug decorator functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.original_stderr = sys.stderr
        self.captured_stderr = StringIO()
        sys.stderr = self.captured_stderr
        self.dataset = MockDataset()

    def tearDown(self):
        """Clean up test fixtures."""
        sys.stderr = self.original_stderr

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'false'})
    def test_decorator_disabled_when_debug_off(self):
        """Test that decorator does nothing when debug is off."""
        result = self.dataset.test_method('value1', arg2='value2')

        self.assertEqual(result, {'arg1': 'value1', 'arg2': 'value2'})
        self.assertEqual(self.captured_stderr.getvalue(), '')

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'basic'})
    def test_decorator_logs_successful_call(self):
        """Test that decorator logs successful method calls."""
        result = self.dataset.test_method('value1', arg2='value2')

        self.assertEqual(result, {'arg1': 'value1', 'arg2': 'value2'})
        output = self.captured_stderr.getvalue()
        self.assertIn('Dataset call #', output)
        self.assertIn('MockDataset.test_method', output)
        self.assertIn('Dataset result: MockDataset.test_method', output)

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'basic'})
    def test_decorator_logs_errors(self):
        """Test that decorator logs method errors."""
        with self.assertRaises(ValueError):
            self.dataset.error_method()

        output = self.captured_stderr.getvalue()
        self.assertIn('MockDataset.error_method', output)
        self.assertIn('Dataset error: MockDataset.error_method', output)
        self.assertIn('ValueError: Test error', output)

    @patch.dict(os.environ, {'IPGATE_DEBUG': 'true', 'IPGATE_DEBUG_LEVEL': 'basic'})
    def test_range_lookup_traced(self):
        """Test range dataset lookups are traced in debug mode."""
        table = RangeTable([RangeEntry(0, 2 ** 32 - 1, {'country': 'Anywhere'})])
        dataset = RangeDataset('ip2location', 'IP2Location', table, {'country': ('country', as_text)})

        result = dataset.lookup(AddressNormalizer().normalize('8.8.8.8'))

        self.assertEqual(result, {'country': 'Anywhere'})
        output = self.captured_stderr.getvalue()
        self.assertIn('IP2Location.lookup', output)
        self.assertIn('dict(1 keys)', output)


if __name__ == '__main__':
    unittest.main()
