"""
Compensation Log

The spreadsheet has no transactions, so a compound ledger write is a
sequence of independent calls. Each completed step registers the call
that undoes it; if a later step fails, the undo calls run newest first.
"""

from typing import Awaitable, Callable

import structlog


logger = structlog.get_logger(__name__)

UndoAction = Callable[[], Awaitable[None]]


class CompensationLog:
    """Undo stack for one compound operation."""

    def __init__(self, operation: str):
        self.operation = operation
        self._undo: list[tuple[str, UndoAction]] = []

    def record(self, description: str, undo: UndoAction) -> None:
        """Register the undo for a step that just succeeded."""
        self._undo.append((description, undo))

    @property
    def steps(self) -> list[str]:
        return [description for description, _ in self._undo]

    async def rollback(self) -> list[Exception]:
        """
        Run every undo action, newest first.

        Keeps going after a failed undo so as much as possible is
        restored. Returns the undo failures (empty if fully rolled back).
        """
        failures: list[Exception] = []
        while self._undo:
            description, undo = self._undo.pop()
            try:
                await undo()
            except Exception as e:
                logger.error(
                    "compensation_step_failed",
                    operation=self.operation,
                    step=description,
                    error=str(e),
                )
                failures.append(e)
        return failures
