"""
Latency profiling hooks.

Decorators that log how long a phase took, e.g.
"[LATENCY] oracle.decide: 812.4ms". Logged at DEBUG so normal runs stay quiet.
"""

import time
import functools
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


def profile_latency(phase_name: str = "operation"):
    """
    Decorator to profile latency of a sync function.

    Usage:
        @profile_latency("grep_tree")
        def grep_tree(...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                logger.debug(f"[LATENCY] {phase_name}: {elapsed_ms:.1f}ms")
        return wrapper
    return decorator


def profile_latency_async(phase_name: str = "operation"):
    """Decorator to profile latency of a coroutine function."""
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            start = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                logger.debug(f"[LATENCY] {phase_name}: {elapsed_ms:.1f}ms")
        return wrapper
    return decorator
