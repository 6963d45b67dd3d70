"""Logfire tracing for report resources.

Spans are always opened around resource reads; they are only exported when
``initialize_observability`` has configured Logfire (enabled in settings and
a token present).
"""

import functools
import logging
import time
from collections.abc import Callable
from typing import Any

import logfire

from .config import ServerConfig

logger = logging.getLogger(__name__)


def initialize_observability(config: ServerConfig) -> bool:
    """Configure Logfire from server settings. Returns whether tracing was enabled."""
    if not config.observability_enabled:
        logger.debug("Observability disabled via configuration")
        return False

    logfire.configure(
        service_name=config.server_name,
        service_version=config.server_version,
        environment=config.observability_environment,
        token=config.logfire_token,
        send_to_logfire="if-token-present",
        console=False,
    )
    logger.info("Logfire tracing enabled (%s)", config.observability_environment)
    return True


def trace_report(report_type: str):
    """Wrap an async resource handler in a ``resource.read.<report_type>`` span."""

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            with logfire.span(
                f"resource.read.{report_type}",
                report_type=report_type,
            ) as span:
                _add_attributes(span, "input", kwargs)
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    span.set_attribute("resource.success", False)
                    span.set_attribute("resource.error", str(e))
                    raise

                span.set_attribute("resource.success", True)
                span.set_attribute("resource.duration_ms", (time.perf_counter() - started) * 1000)
                if isinstance(result, dict) and isinstance(result.get("items"), list):
                    span.set_attribute("result.item_count", len(result["items"]))
                return result

        return wrapper

    return decorator


def _add_attributes(span: Any, prefix: str, data: dict[str, Any]) -> None:
    for key, value in data.items():
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)
