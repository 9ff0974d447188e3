"""Standard provider: registers the bundled http, dns and ssl checks."""

from __future__ import annotations

import logging

from .domain import domain_check
from .http import http_check
from .ssl import ssl_check

logger = logging.getLogger(__name__)

NAME = "Uptimer Standard Checks"


def setup(ctx) -> None:
    ctx.add_check(http_check())
    ctx.add_check(domain_check())
    ctx.add_check(ssl_check())


def shutdown(ctx) -> None:
    logger.debug("Standard provider %s shut down", ctx.provider_id)
