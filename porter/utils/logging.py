"""Structured logging configuration."""

import logging
import sys
from typing import Any

import structlog
from pythonjsonlogger import jsonlogger

from porter.config import get_settings

SERVICE_NAME = "porter-dispatch"


def setup_logging() -> None:
    """
    Send structlog events through the standard library root handler.

    In ``json`` mode python-json-logger writes one object per event with the
    bound key/values as top-level fields; ``text`` mode renders console lines.
    Every event carries the service name and deployment environment.
    """
    settings = get_settings()
    log_level = getattr(logging, settings.log_level)
    json_output = settings.log_format == "json"

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(
            jsonlogger.JsonFormatter(
                fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
                rename_fields={"levelname": "level", "asctime": "timestamp", "message": "event"},
            )
        )
    else:
        handler.setFormatter(logging.Formatter("%(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Per-request access lines only outside production.
    logging.getLogger("uvicorn.access").setLevel(
        logging.WARNING if settings.environment == "production" else log_level
    )

    def add_service_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", settings.environment)
        return event_dict

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        add_service_context,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if json_output:
        processors.append(structlog.stdlib.render_to_log_kwargs)
    else:
        processors += [
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=True),
            structlog.dev.ConsoleRenderer(colors=settings.environment == "development"),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


class DispatchLogger:
    """Logger for order lifecycle and assignment events."""

    def __init__(self, component: str):
        self.component = component
        self.logger = get_logger(component)

    def log_transition(
        self,
        order_id: str,
        order_code: str,
        from_status: str | None,
        to_status: str,
        **kwargs: Any,
    ) -> None:
        """Log an order status change."""
        self.logger.info(
            "order_status_changed",
            component=self.component,
            order_id=order_id,
            order_code=order_code,
            from_status=from_status,
            to_status=to_status,
            **kwargs,
        )

    def log_assignment(
        self,
        order_id: str,
        driver_id: str | None,
        vehicle_id: str | None,
        **kwargs: Any,
    ) -> None:
        """Log a driver/vehicle assignment change."""
        self.logger.info(
            "order_assignment_changed",
            component=self.component,
            order_id=order_id,
            driver_id=driver_id,
            vehicle_id=vehicle_id,
            **kwargs,
        )

    def log_sync_failure(
        self,
        entity: str,
        entity_id: str,
        action: str,
        order_id: str,
        error: str,
    ) -> None:
        """Log a best-effort side effect that did not apply."""
        self.logger.warning(
            "entity_sync_failed",
            component=self.component,
            entity=entity,
            entity_id=entity_id,
            action=action,
            order_id=order_id,
            error=error,
        )
