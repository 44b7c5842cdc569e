"""
Logging setup for the elastic balancer
"""
import logging
import sys
from typing import Optional


class BalancerLogger:
    """Console logger for the balancer package with debug mode support"""

    def __init__(self, name: str = "elastic_balancer", debug: bool = False,
                 verbose: bool = False, level: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self.debug_mode = debug
        self.verbose_mode = verbose

        # Remove existing handlers to avoid duplication
        self.logger.handlers.clear()

        if debug:
            self.logger.setLevel(logging.DEBUG)
        elif verbose:
            self.logger.setLevel(logging.INFO)
        elif level:
            self.logger.setLevel(getattr(logging, level))
        else:
            self.logger.setLevel(logging.WARNING)

        handler = logging.StreamHandler(sys.stdout)

        if debug:
            formatter = logging.Formatter('[%(levelname)s] %(name)s:%(lineno)d - %(message)s')
        else:
            formatter = logging.Formatter('%(message)s')

        handler.setFormatter(formatter)
        self.logger.addHandler(handler)

    def debug(self, message: str) -> None:
        self.logger.debug(message)

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    def success(self, message: str) -> None:
        """Log success message"""
        self.logger.info(f"✓ {message}")


# Global logger instance
_logger: Optional[BalancerLogger] = None


def get_logger(debug: bool = False, verbose: bool = False,
               level: Optional[str] = None) -> BalancerLogger:
    """Get or create the process-wide console logger"""
    global _logger
    if not debug and not verbose and level is None and _logger is not None:
        return _logger
    if (_logger is None or _logger.debug_mode != debug or _logger.verbose_mode != verbose
            or level is not None):
        _logger = BalancerLogger(debug=debug, verbose=verbose, level=level)
    return _logger


def set_debug_mode(debug: bool = True) -> None:
    """Enable or disable debug mode"""
    global _logger
    verbose = _logger.verbose_mode if _logger else False
    _logger = BalancerLogger(debug=debug, verbose=verbose)


def set_verbose_mode(verbose: bool = True) -> None:
    """Enable or disable verbose mode"""
    global _logger
    debug = _logger.debug_mode if _logger else False
    _logger = BalancerLogger(debug=debug, verbose=verbose)
