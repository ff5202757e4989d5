"""Bounded log of executed commands used for duplicate suppression."""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterator

from ..constants import COMMAND_HISTORY_SIZE, START_COMMAND
from .models import Command

LOGGER = logging.getLogger(__name__)


class CommandHistory:
    """Most-recent-first record of the commands a robot has executed.

    Usage:
        history = CommandHistory()
        if history.head() != candidate:
            send(candidate)
            history.add(candidate)

    Capacity is fixed; adding past it silently drops the oldest entry.
    """

    def __init__(
        self,
        capacity: int = COMMAND_HISTORY_SIZE,
        *,
        sentinel: Command = Command(START_COMMAND),
    ) -> None:
        if capacity < 1:
            raise ValueError("Command history capacity must be positive")
        self._entries: Deque[Command] = deque(maxlen=capacity)
        self._sentinel = sentinel

    @property
    def capacity(self) -> int:
        assert self._entries.maxlen is not None
        return self._entries.maxlen

    def add(self, command: Command) -> None:
        if len(self._entries) == self.capacity:
            LOGGER.debug("Command history full; evicting %s", self._entries[-1])
        self._entries.appendleft(command)

    def head(self) -> Command:
        """Return the most recent command, or the sentinel when empty."""
        if not self._entries:
            return self._sentinel
        return self._entries[0]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Command]:
        return iter(self._entries)
