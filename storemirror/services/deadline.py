# storemirror/services/deadline.py
import threading
from typing import Optional


class Cancelled(Exception):
    """The webhook caller stopped waiting; raised in place of the next remote write."""

    def __init__(self, before: str):
        super().__init__(f"stopped before {before}")
        self.before = before


def checkpoint(cancel: Optional[threading.Event], before: str) -> None:
    """Raise Cancelled if the delivery that started this work has already been answered."""
    if cancel is not None and cancel.is_set():
        raise Cancelled(before)
