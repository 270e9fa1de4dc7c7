"""Logging with a per-request correlation id.

The id lives in a ``ContextVar`` so concurrent requests and async tasks
each see their own. ``CorrelationIdMiddleware`` sets it from the
``X-Correlation-ID`` header; every logger obtained through ``get_logger``
stamps it on its records, and ``StructuredFormatter`` prints it first so a
single checkout or webhook can be grepped end to end.

Usage:
    from storefront.utils.logging import get_logger, log_payment_operation

    logger = get_logger(__name__)
    log_payment_operation(logger, "create_order", order_id="ORD-3F2A9C1B7D4E")
"""

import logging
import uuid
from contextvars import ContextVar
from typing import Any

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

NO_CORRELATION_ID = "no-correlation-id"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Webhook results that deserve attention without being failures
_WARNING_RESULTS = {"duplicate", "skipped", "rejected"}


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation id to the current context, generating one if needed.

    Returns:
        The id now in effect.
    """
    cid = correlation_id or generate_correlation_id()
    _correlation_id.set(cid)
    return cid


def get_correlation_id() -> str | None:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


class CorrelationIdFilter(logging.Filter):
    """Copies the current correlation id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class StructuredFormatter(logging.Formatter):
    """Prefixes every line with ``[correlation-id]``."""

    def format(self, record: logging.LogRecord) -> str:
        cid = getattr(record, "correlation_id", None) or get_correlation_id() or NO_CORRELATION_ID
        return f"[{cid}] {super().format(record)}"


def configure_logging(level: int = logging.INFO) -> None:
    """Install ``StructuredFormatter`` on the root logger's handlers.

    Repeated calls reformat the existing handlers instead of stacking new ones.
    """
    root = logging.getLogger()
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    for handler in root.handlers:
        handler.setFormatter(StructuredFormatter(DEFAULT_LOG_FORMAT))
    root.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    """``logging.getLogger`` with the correlation filter attached once."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, CorrelationIdFilter) for f in logger.filters):
        logger.addFilter(CorrelationIdFilter())
    return logger


def _present(**fields: Any) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value is not None and value != ""}


def _emit(
    logger: logging.Logger,
    level: int,
    headline: str,
    context: dict[str, Any],
    shown: list[str] | None = None,
) -> None:
    keys = shown if shown is not None else list(context)
    parts = [headline] + [f"{key}={context[key]}" for key in keys if key in context]
    logger.log(level, " | ".join(parts), extra=context)


def log_payment_operation(
    logger: logging.Logger,
    operation: str,
    *,
    order_id: str | None = None,
    session_id: str | None = None,
    user_id: str | None = None,
    amount: Any | None = None,
    status: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log one checkout or fulfillment step as ``key=value`` pairs.

    The same fields are attached to the record via ``extra``. Logged at
    ERROR when ``error`` is given, INFO otherwise.

    Args:
        logger: Logger to write to
        operation: Step name, e.g. "initiate_payment" or "create_order"
        amount: Major-unit amount; logged as its string form
        **extra: Further fields, e.g. stock_failures=1
    """
    context = _present(
        operation=operation,
        order_id=order_id,
        session_id=session_id,
        user_id=user_id,
        amount=str(amount) if amount is not None else None,
        status=status,
        error=error,
    )
    context.update(extra)
    shown = [key for key in context if key != "operation"]
    _emit(
        logger,
        logging.ERROR if error else logging.INFO,
        f"Payment operation: {operation}",
        context,
        shown,
    )


def log_webhook_event(
    logger: logging.Logger,
    event_type: str,
    event_id: str,
    *,
    session_id: str | None = None,
    order_id: str | None = None,
    result: str | None = None,
    error: str | None = None,
    **extra: Any,
) -> None:
    """Log a Stripe event and what became of it.

    ``result`` picks the level: "error" logs at ERROR; "duplicate",
    "skipped" and "rejected" at WARNING; anything else at INFO.
    """
    context = _present(
        event_type=event_type,
        event_id=event_id,
        session_id=session_id,
        order_id=order_id,
        result=result,
        error=error,
    )
    context.update(extra)

    if result == "error":
        level = logging.ERROR
    elif result in _WARNING_RESULTS:
        level = logging.WARNING
    else:
        level = logging.INFO

    _emit(
        logger,
        level,
        f"Webhook event: {event_type} ({event_id})",
        context,
        ["result", "order_id", "error"],
    )
