"""State shared by the patient and admin controllers.

Controllers are the boundary where remote errors stop: every
:class:`ClinicQueueError` is turned into ``error`` (a display string) and
``last_error`` (the exception) instead of propagating to presentation code.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from .config import Settings, settings as default_settings
from .errors import ClinicQueueError

logger = logging.getLogger(__name__)

# Shows a yes/no prompt to the user; may be sync or async
Confirm = Callable[[str], Union[bool, Awaitable[bool]]]


async def ask(confirm: Confirm, prompt: str) -> bool:
    answer = confirm(prompt)
    if inspect.isawaitable(answer):
        answer = await answer
    return bool(answer)


class Controller:
    def __init__(self, confirm: Confirm, config: Optional[Settings] = None):
        self.confirm = confirm
        self.config = config or default_settings
        self.error = ""
        self.message = ""
        self.last_error: Optional[ClinicQueueError] = None
        self._message_timer: Optional[asyncio.TimerHandle] = None

    def _reset_alerts(self) -> None:
        self.error = ""
        self.message = ""
        self.last_error = None

    def _fail(self, e: ClinicQueueError) -> None:
        self.error = e.message
        self.last_error = e
        logger.debug(f"{type(self).__name__}: {type(e).__name__}: {e.message}")

    def _flash(self, message: str, seconds: float) -> None:
        """Show a success message that clears itself after ``seconds`` (0 keeps it)."""
        self.message = message
        if self._message_timer is not None:
            self._message_timer.cancel()
            self._message_timer = None
        if seconds > 0:
            loop = asyncio.get_running_loop()
            self._message_timer = loop.call_later(seconds, self._clear_message, message)

    def _clear_message(self, message: str) -> None:
        self._message_timer = None
        if self.message == message:
            self.message = ""

    def close(self) -> None:
        if self._message_timer is not None:
            self._message_timer.cancel()
            self._message_timer = None
