import logging
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)

class CompensationStack:
    """
    Compensating actions for a booking in progress.

    Each completed step pushes the action that undoes it; on failure the
    actions run newest-first. Once the booking is past the point of no return
    the stack is discarded instead.
    """

    def __init__(self, label: str):
        self.label = label
        self._actions: List[Tuple[str, Callable[[], object]]] = []

    def push(self, description: str, action: Callable[[], object]):
        self._actions.append((description, action))

    def discard(self):
        self._actions.clear()

    def unwind(self):
        while self._actions:
            description, action = self._actions.pop()
            try:
                action()
                logger.info(f"[{self.label}] compensated: {description}")
            except Exception:
                # keep unwinding; the remaining steps still need undoing
                logger.exception(f"[{self.label}] compensation failed: {description}")

    def __len__(self):
        return len(self._actions)
