#!/usr/bin/env python3
"""
Tests for the decorators module.
"""
import unittest
import time
from unittest.mock import patch, MagicMock
import os
import sys

# Add the parent directory to sys.path so we can import from utils
sys.path.insert(0, os.path.abspath(os.path.dirname(os.path.dirname(__file__))))

from model.exceptions import DataError, SamplingError
from utils.decorators import log_errors, log_step, timed


class TestDecorators(unittest.TestCase):
    """Tests for the decorators module."""

    @patch('utils.decorators.logger')
    def test_log_errors_decorator(self, mock_logger):
        """Test the log_errors decorator."""

        @log_errors()
        def test_error_function():
            raise ValueError("Test error")

        # The function should raise the exception
        with self.assertRaises(ValueError):
            test_error_function()

        # Verify logger was called with error
        mock_logger.error.assert_called_once()

    @patch('utils.decorators.logger')
    def test_log_errors_formats_message(self, mock_logger):
        @log_errors(msg="Failure in {func_name}")
        def sample_posterior():
            raise SamplingError("divergences")

        with self.assertRaises(SamplingError):
            sample_posterior()

        message = mock_logger.error.call_args[0][0]
        self.assertIn("Failure in sample_posterior", message)
        self.assertIn("divergences", message)

    @patch('utils.decorators.logger')
    def test_log_errors_ignores_unexpected_exceptions(self, mock_logger):
        @log_errors(DataError)
        def load():
            raise KeyError("column")

        with self.assertRaises(KeyError):
            load()
        mock_logger.error.assert_not_called()

    @patch('utils.decorators.logger')
    def test_log_errors_default_return(self, mock_logger):
        @log_errors([DataError, ValueError], reraise=False, default_return="fallback")
        def load():
            raise DataError("bad table")

        self.assertEqual(load(), "fallback")
        mock_logger.error.assert_called_once()

    @patch('utils.logging_utils.get_logger')
    def test_log_step_decorator(self, mock_get_logger):
        """Test the log_step decorator."""
        mock_logger = MagicMock()
        mock_get_logger.return_value = mock_logger

        @log_step("Test Step")
        def test_step_function():
            return "step_result"

        result = test_step_function()

        # Verify logger was called for start and end
        self.assertEqual(mock_logger.info.call_count, 2)
        self.assertEqual(result, "step_result")

    @patch('utils.decorators.logger')
    def test_timed_decorator(self, mock_logger):
        """Test the timed decorator."""

        @timed()
        def test_timed_function():
            time.sleep(0.01)
            return "timed_result"

        result = test_timed_function()

        # Verify logger was called
        mock_logger.info.assert_called()
        self.assertEqual(result, "timed_result")

    @patch('utils.decorators.logger')
    def test_timed_decorator_with_params(self, mock_logger):
        """Test the timed decorator with parameters."""

        @timed("Custom Timing", log_level="debug")
        def test_timed_function_with_params(arg1, arg2=None):
            time.sleep(0.01)
            return f"{arg1}_{arg2}"

        result = test_timed_function_with_params("test", arg2="value")

        # Verify logger was called with debug level
        mock_logger.debug.assert_called()
        self.assertIn("Custom Timing", mock_logger.debug.call_args[0][0])
        self.assertEqual(result, "test_value")

    @patch('utils.decorators.logger')
    def test_timed_bare_decorator(self, mock_logger):
        @timed
        def refit():
            return 3

        self.assertEqual(refit(), 3)
        self.assertIn("refit executed in", mock_logger.info.call_args[0][0])


if __name__ == "__main__":
    unittest.main()
