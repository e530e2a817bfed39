import logging
from typing import Any, Callable, Optional

from peerflex.utils.change_feed import maybe_await


logger = logging.getLogger(__name__)

OnChange = Callable[[], Any]


def error_text(exc: BaseException, fallback: str) -> str:
    return str(exc) or fallback


class ViewState:
    """Base for the async view-state objects; calls ``on_change`` after every state change."""

    def __init__(self, on_change: Optional[OnChange] = None) -> None:
        self.on_change = on_change

    async def _changed(self) -> None:
        if self.on_change is None:
            return
        try:
            await maybe_await(self.on_change())
        except Exception:
            logger.exception("%s change listener failed", type(self).__name__)
