"""
auth/delivery.py -- Out-of-band delivery of password reset tokens.

The engine only produces the token; how it reaches the user is a
collaborator behind the ResetDelivery protocol. LogResetDelivery writes the
reset link to the application log, which is the delivery channel for local
development. A mail-sending implementation plugs in at api/main.py lifespan.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger("lockbox.delivery")


class ResetDelivery(Protocol):
    def send_reset(self, email: str, username: str, token: str) -> None: ...


class LogResetDelivery:
    """Deliver reset links by logging them. Development only."""

    def __init__(self, url_base: str) -> None:
        self.url_base = url_base.rstrip("/")

    def send_reset(self, email: str, username: str, token: str) -> None:
        logger.info("[EMAIL SEND] To: %s (%s), reset link: %s/%s", email, username, self.url_base, token)
