"""Shared error-capture utility for the registry facade."""

from __future__ import annotations

import logging

from cni_protocol.errors import CNIError

logger = logging.getLogger(__name__)


def log_and_capture_error(*, operation: str, network: str, exc: CNIError) -> CNIError:
    """Log full exception details and hand the error back as a value."""
    logger.error("%s of network %r failed", operation, network, exc_info=exc)
    return exc
