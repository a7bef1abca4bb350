"""Word-by-word "typing" reveal of agent messages.

Purely presentational: the message is already complete when the reveal
starts, and cancelling it never touches analysis or conversation state.
"""
import asyncio
import logging
import re
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class TypedReveal:
    def __init__(self, text: str, on_step: Callable[[str], None], delay: float = 0.03):
        self.text = text
        self.on_step = on_step
        self.delay = delay
        self.revealed = ""
        self._task: Optional[asyncio.Task] = None

    def steps(self) -> List[str]:
        """Increments that concatenate back to the full text"""
        return re.findall(r"\S+\s*|\s+", self.text)

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.ensure_future(self._run())
        return self._task

    async def _run(self) -> str:
        for piece in self.steps():
            await asyncio.sleep(self.delay)
            self.revealed += piece
            self.on_step(piece)
        return self.revealed

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            logger.debug("Typed reveal cancelled")
            self._task.cancel()

    @property
    def done(self) -> bool:
        return self._task is not None and self._task.done()
