"""
Unit tests for logger module
"""
import logging
from io import StringIO
from unittest.mock import patch

from elastic_balancer.logger import BalancerLogger, get_logger, set_debug_mode, set_verbose_mode


class TestBalancerLogger:
    """Test BalancerLogger functionality"""

    def test_logger_initialization(self):
        """Test logger initialization with different modes"""
        logger = BalancerLogger()
        assert logger.logger.level == logging.WARNING
        assert not logger.debug_mode
        assert not logger.verbose_mode

        debug_logger = BalancerLogger(debug=True)
        assert debug_logger.logger.level == logging.DEBUG
        assert debug_logger.debug_mode

        verbose_logger = BalancerLogger(verbose=True)
        assert verbose_logger.logger.level == logging.INFO
        assert verbose_logger.verbose_mode

        level_logger = BalancerLogger(level="ERROR")
        assert level_logger.logger.level == logging.ERROR

    def test_log_methods(self):
        """Test different logging methods"""
        with patch('sys.stdout', new_callable=StringIO) as mock_stdout:
            logger = BalancerLogger(verbose=True)

            logger.info("Test info message")
            logger.success("Test success message")
            logger.warning("Test warning message")
            logger.error("Test error message")

            output = mock_stdout.getvalue()
            assert "Test info message" in output
            assert "✓ Test success message" in output
            assert "Test warning message" in output
            assert "Test error message" in output
            assert "[INFO]" not in output

    def test_debug_mode_formatting(self):
        """Test debug mode includes logger name and line numbers"""
        with patch('sys.stdout', new_callable=StringIO) as mock_stdout:
            logger = BalancerLogger(debug=True)
            logger.debug("Test debug message")

            output = mock_stdout.getvalue()
            assert "[DEBUG] elastic_balancer:" in output
            assert "Test debug message" in output

    def test_module_loggers_propagate(self):
        """Package module loggers write through the console handler"""
        with patch('sys.stdout', new_callable=StringIO) as mock_stdout:
            BalancerLogger(verbose=True)
            logging.getLogger("elastic_balancer.balancer").info("Elastic Balancer loaded")

            assert "Elastic Balancer loaded" in mock_stdout.getvalue()

    def test_no_duplicate_handlers(self):
        BalancerLogger()
        logger = BalancerLogger()

        assert len(logger.logger.handlers) == 1


class TestGlobalLogger:
    """Test global logger functions"""

    def test_get_logger(self):
        """Test get_logger function"""
        logger1 = get_logger()
        logger2 = get_logger()
        assert logger1 is logger2

        debug_logger = get_logger(debug=True)
        assert debug_logger.debug_mode

    def test_get_logger_with_level(self):
        logger = get_logger(level="ERROR")

        assert logger.logger.level == logging.ERROR

    def test_set_debug_mode(self):
        """Test set_debug_mode function"""
        set_debug_mode(True)
        logger = get_logger(debug=True)
        assert logger.debug_mode

        set_debug_mode(False)
        logger = get_logger()
        assert not logger.debug_mode

    def test_set_verbose_mode(self):
        """Test set_verbose_mode function"""
        set_verbose_mode(True)
        logger = get_logger(verbose=True)
        assert logger.verbose_mode

        set_verbose_mode(False)
        logger = get_logger()
        assert not logger.verbose_mode
