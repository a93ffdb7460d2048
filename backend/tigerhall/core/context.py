"""Per-request deadline and logging handle.

A RequestContext travels with every service and repository call. It carries
an optional deadline on the monotonic clock and the logger the request
should write to. Callers check the context before each I/O call so that a
request whose deadline has passed stops before issuing more writes.

Example:
    Give a request five seconds:
        >>> from tigerhall.core import context
        >>> ctx = context.RequestContext.with_timeout(5.0)
        >>> ctx.check()  # raises DeadlineExceededError once expired
        >>> ctx.remaining()
        4.99...
"""

from __future__ import annotations

import dataclasses
import logging
import time

from tigerhall.core import errors

_default_logger = logging.getLogger("tigerhall")


@dataclasses.dataclass(frozen=True)
class RequestContext:
    """Deadline and logger for a single request.

    Attributes:
        deadline: time.monotonic() instant after which work must stop,
            or None for no deadline.
        logger: Logger or LoggerAdapter the request writes to.
    """

    deadline: float | None = None
    logger: logging.Logger | logging.LoggerAdapter = _default_logger

    @classmethod
    def background(
        cls,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> RequestContext:
        """Context without a deadline."""
        return cls(deadline=None, logger=logger or _default_logger)

    @classmethod
    def with_timeout(
        cls,
        seconds: float,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ) -> RequestContext:
        """Context whose deadline is ``seconds`` from now."""
        return cls(
            deadline=time.monotonic() + seconds,
            logger=logger or _default_logger,
        )

    def remaining(self) -> float | None:
        """Seconds left before the deadline, never negative.

        Returns:
            Remaining seconds, or None when there is no deadline.
        """
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self) -> None:
        """Raise if the deadline has passed.

        Raises:
            DeadlineExceededError: If the deadline is in the past.
        """
        remaining = self.remaining()
        if remaining is not None and remaining <= 0.0:
            raise errors.DeadlineExceededError("request deadline exceeded")
