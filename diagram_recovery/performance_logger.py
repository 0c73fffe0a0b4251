#!/usr/bin/env python3
"""
Performance Logger Utility for the diagram recovery pipeline
Collects per-stage timings so slow validation or rendering backends show up
in logs and in the stats endpoint.
"""

import time
import logging
import functools
import asyncio
from contextlib import contextmanager
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class PerformanceMetrics:
    """Centralized stage timing collection"""

    def __init__(self):
        self.timings: Dict[str, List[float]] = {}

    def record_timing(self, operation: str, duration: float):
        self.timings.setdefault(operation, []).append(duration)

    def get_summary(self) -> Dict[str, Dict[str, float]]:
        return {
            operation: {
                "count": len(times),
                "average_ms": round(sum(times) / len(times) * 1000, 3),
                "max_ms": round(max(times) * 1000, 3),
            }
            for operation, times in self.timings.items()
            if times
        }

    def reset(self):
        self.timings.clear()


# Global metrics instance
_metrics = PerformanceMetrics()


def get_metrics() -> PerformanceMetrics:
    """Get the global metrics instance"""
    return _metrics


@contextmanager
def time_block(block_name: str):
    """Context manager for timing a pipeline stage"""
    start_time = time.perf_counter()
    logger.debug(f"🔄 Stage start: {block_name}")

    try:
        yield
    finally:
        duration = time.perf_counter() - start_time
        _metrics.record_timing(block_name, duration)
        logger.debug(f"✅ Stage end: {block_name} ({duration:.3f}s)")


def time_function(operation_name: Optional[str] = None):
    """Decorator for timing sync or async function execution"""
    def decorator(func):
        name = operation_name or f"{func.__module__}.{func.__name__}"

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            with time_block(name):
                return func(*args, **kwargs)

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            with time_block(name):
                return await func(*args, **kwargs)

        return async_wrapper if asyncio.iscoroutinefunction(func) else sync_wrapper
    return decorator


def log_render_performance(diagram_id: str, status: str, duration: float, fixes: int = 0):
    """Log the end-to-end timing of one render attempt"""
    icon = {"rendered": "✅", "degraded": "⚠️", "failed": "❌"}.get(status, "ℹ️")
    logger.info(f"{icon} RENDER PERFORMANCE: {diagram_id} {status.upper()} ({duration:.3f}s, {fixes} fixes)")
