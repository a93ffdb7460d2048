"""Logging setup for the service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import MutableMapping

    from tigerhall.core import config

LOG_FORMAT = "%(asctime)s %(levelname)s [{service}] %(name)s: %(message)s"


def configure_logging(settings: config.Settings) -> None:
    """Configure root logging from settings.

    Level is DEBUG outside production and INFO in production unless
    ``settings.log_level`` overrides it.

    Args:
        settings: Application settings.
    """
    logging.basicConfig(
        level=settings.effective_log_level,
        format=LOG_FORMAT.format(service=settings.service_name),
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    logging.getLogger("tigerhall").setLevel(settings.effective_log_level)


class RequestLoggerAdapter(logging.LoggerAdapter):
    """Prefix every message with the request id."""

    def process(
        self,
        msg: Any,
        kwargs: MutableMapping[str, Any],
    ) -> tuple[Any, MutableMapping[str, Any]]:
        request_id = (self.extra or {}).get("request_id", "-")
        return f"[{request_id}] {msg}", kwargs
