"""
Debug utilities for ipgate.

This module provides debugging output for dataset lookups, dataset loading
and resolution timing when debug mode is enabled.
"""

import sys
import time
import json
from typing import Any, Dict, Optional, Callable
from functools import wraps
from .config import config


class DebugLogger:
    """Debug logger for low-level diagnostics."""

    LEVELS = {'basic': 0, 'detailed': 1, 'verbose': 2}

    def __init__(self):
        """Initialize debug logger."""
        self.start_time = time.time()
        self.dataset_call_count = 0

    def log(self, level: str, message: str, data: Optional[Dict[str, Any]] = None):
        """
        Print a message to stderr if debug mode admits its level.

        Data is printed as one line per key at 'detailed' and as indented JSON
        at 'verbose'.
        """
        if not config.is_debug_mode():
            return

        current_level = config.get_debug_level()
        if self.LEVELS.get(level, 0) > self.LEVELS.get(current_level, 0):
            return

        elapsed = time.time() - self.start_time
        print(f"[DEBUG +{elapsed:.3f}s] {message}", file=sys.stderr)

        if not data or current_level == 'basic':
            return
        if current_level == 'verbose':
            lines = json.dumps(data, indent=2, default=str).splitlines()
        else:
            lines = [f"{key}: {self._describe_value(value)}" for key, value in data.items()]
        for line in lines:
            print(f"[DEBUG]   {line}", file=sys.stderr)

    @staticmethod
    def _describe_value(value: Any) -> str:
        if isinstance(value, (dict, list, tuple)):
            return f"{len(value)} items"
        text = str(value)
        return text if len(text) <= 100 else text[:97] + '...'

    def log_dataset_call(self, dataset_name: str, method: str, args: tuple = ()):
        """Log dataset method call."""
        self.dataset_call_count += 1

        args_str = ", ".join(str(arg) for arg in args[:2])
        if len(args) > 2:
            args_str += f", ... (+{len(args)-2} more)"

        self.log('basic', f"Dataset call #{self.dataset_call_count}: {dataset_name}.{method}({args_str})")

    def log_dataset_result(self, dataset_name: str, method: str, result: Any, execution_time: float):
        """Log dataset method result."""
        result_summary = self._summarize_result(result)

        self.log('basic', f"Dataset result: {dataset_name}.{method} -> {result_summary} ({execution_time * 1000:.3f}ms)")

        self.log('detailed', f"Full result data for {dataset_name}.{method}:", {'result': result})

    def log_dataset_error(self, dataset_name: str, method: str, error: Exception, execution_time: float):
        """Log dataset method error."""
        error_type = type(error).__name__
        error_msg = str(error)[:100]

        self.log('basic', f"Dataset error: {dataset_name}.{method} -> {error_type}: {error_msg} ({execution_time * 1000:.3f}ms)")

    def _summarize_result(self, result: Any) -> str:
        if result is None:
            return "no match"
        if isinstance(result, dict):
            return f"dict({len(result)} keys)"
        return type(result).__name__

    def log_load_report(self, report):
        """Log the outcome of loading one dataset file."""
        self.log('basic', f"Loaded {report.path}: {report.status}, {report.entries} entries, "
                          f"{report.lines_skipped} skipped, {report.overlaps_dropped} overlapping")

    def log_resolution_start(self, target: str):
        """Log start of resolution."""
        self.log('basic', f"Resolving: {target}")

    def log_resolution_complete(self, target: str, total_time: float, datasets_matched: int):
        """Log completion of resolution."""
        self.log('basic', f"Resolved {target}: {datasets_matched} datasets matched, {total_time * 1000:.3f}ms total")

    def log_config_info(self):
        """Log current configuration in debug mode."""
        if not config.is_debug_mode():
            return

        debug_info = {
            'debug_level': config.get_debug_level(),
            'data_dir': str(config.get_data_dir()),
            'rate_limit_window': config.get_rate_limit_window(),
            'rate_limit_max': config.get_rate_limit_max(),
        }

        self.log('detailed', "Current configuration:", debug_info)


def debug_dataset_method(func: Callable) -> Callable:
    """
    Decorator to add debug logging to dataset methods.

    This decorator logs dataset method calls, results, and errors
    when debug mode is enabled.
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        if not config.is_debug_mode():
            return func(self, *args, **kwargs)

        dataset_name = getattr(self, 'name', self.__class__.__name__)
        method_name = func.__name__

        debug_logger.log_dataset_call(dataset_name, method_name, args)

        start_time = time.time()
        try:
            result = func(self, *args, **kwargs)
            execution_time = time.time() - start_time
            debug_logger.log_dataset_result(dataset_name, method_name, result, execution_time)
            return result
        except Exception as e:
            execution_time = time.time() - start_time
            debug_logger.log_dataset_error(dataset_name, method_name, e, execution_time)
            raise

    return wrapper


# Global debug logger instance
debug_logger = DebugLogger()
