"""
Confirmation workflow.

Destructive bulk operations block on an operator decision. The engine opens
a request, a single shared confirmation surface renders it, and the surface
resolves it with confirm() or cancel(). The waiting operation receives True
or False.

States: Closed -> Open -> Closed (resolved True on confirm, False on cancel).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger(__name__)

ConfirmVariant = Literal["danger", "primary", "logout"]


@dataclass(frozen=True)
class ConfirmationRequest:
    """What the confirmation surface should display."""

    message: str
    title: str = "Confirm Delete"
    confirm_label: str = "Yes, Delete Data"
    variant: ConfirmVariant = "danger"


class ConfirmationWorkflow:
    """Holds at most one pending confirmation."""

    def __init__(self) -> None:
        self._request: ConfirmationRequest | None = None
        self._future: asyncio.Future[bool] | None = None

    @property
    def is_open(self) -> bool:
        return self._request is not None

    @property
    def current(self) -> ConfirmationRequest | None:
        return self._request

    def request(
        self,
        message: str,
        title: str = "Confirm Delete",
        confirm_label: str = "Yes, Delete Data",
        variant: ConfirmVariant = "danger",
    ) -> asyncio.Future[bool]:
        """Open a confirmation and return the future that receives the answer.

        A request still pending is cancelled (resolved False) first.
        """
        if self._future is not None and not self._future.done():
            logger.info("Superseding pending confirmation")
            self._resolve(False)

        self._request = ConfirmationRequest(
            message=message, title=title, confirm_label=confirm_label, variant=variant
        )
        self._future = asyncio.get_running_loop().create_future()
        return self._future

    def confirm(self) -> None:
        """Resolve the pending request with True."""
        self._resolve(True)

    def cancel(self) -> None:
        """Resolve the pending request with False."""
        self._resolve(False)

    def _resolve(self, answer: bool) -> None:
        future = self._future
        self._request = None
        self._future = None
        if future is not None and not future.done():
            future.set_result(answer)
