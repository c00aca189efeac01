"""Popup Mediator - Show/hide channel for modal notifications"""
import threading
import time
from typing import Any, Callable, Dict, Optional

from ..config.settings import settings
from ..domain.enums import PopupSize


class PopupMediator:
    """
    One popup slot per user session

    hide() closes the popup immediately; its content and options are dropped
    once clear_delay_seconds have passed, so a closing animation can still
    render them.
    """

    def __init__(
        self,
        clear_delay_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self._clear_delay = (
            settings.popup_clear_delay_seconds if clear_delay_seconds is None else clear_delay_seconds
        )
        self._clock = clock
        self._lock = threading.Lock()
        self._is_open = False
        self._content: Optional[Dict[str, Any]] = None
        self._options: Dict[str, Any] = {}
        self._hidden_at: Optional[float] = None

    def show(
        self,
        content: Dict[str, Any],
        title: Optional[str] = None,
        size: PopupSize = PopupSize.MD
    ) -> None:
        with self._lock:
            self._content = content
            self._options = {"size": PopupSize(size)}
            if title is not None:
                self._options["title"] = title
            self._is_open = True
            self._hidden_at = None

    def hide(self) -> None:
        with self._lock:
            if not self._is_open:
                return
            self._is_open = False
            self._hidden_at = self._clock()

    def _expire(self) -> None:
        if self._hidden_at is not None and self._clock() - self._hidden_at >= self._clear_delay:
            self._content = None
            self._options = {}
            self._hidden_at = None

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._is_open

    @property
    def content(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            self._expire()
            return self._content

    @property
    def options(self) -> Dict[str, Any]:
        with self._lock:
            self._expire()
            return dict(self._options)

    def snapshot(self) -> Dict[str, Any]:
        """Current popup state as a plain dict"""
        with self._lock:
            self._expire()
            return {
                "is_open": self._is_open,
                "content": self._content,
                "title": self._options.get("title"),
                "size": self._options.get("size", PopupSize.MD),
            }
