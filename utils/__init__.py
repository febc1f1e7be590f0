"""Utilities for the legal proof system."""

from .utils import (
    setup_logging,
    save_results,
    format_duration,
    PerformanceMonitor,
    create_performance_report,
    get_system_info,
    validate_environment,
)

__all__ = [
    'setup_logging',
    'save_results',
    'format_duration',
    'PerformanceMonitor',
    'create_performance_report',
    'get_system_info',
    'validate_environment',
]
