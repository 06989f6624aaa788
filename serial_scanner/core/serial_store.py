"""Ordered, duplicate-free collection of serials accepted in one session."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterator, List, Optional

if TYPE_CHECKING:
    from .entities import Position, ScannedSerial

logger = logging.getLogger(__name__)


class SerialStore:
    """Dedup store: the only writer of a session's serial collection."""

    def __init__(self):
        self._entries: List["ScannedSerial"] = []

    def try_add(self, candidate: str, position: Optional["Position"]) -> bool:
        """Append ``candidate`` unless an entry with the same number exists.

        Returns:
            True if the serial was accepted, False for a duplicate
        """
        from .entities import ScannedSerial

        if self.contains(candidate):
            logger.debug(f"Serial {candidate} already collected")
            return False

        self._entries.append(ScannedSerial.create(candidate, position))
        logger.info(f"Serial {candidate} accepted ({len(self._entries)} collected)")
        return True

    def remove(self, index: int) -> "ScannedSerial":
        """Delete the entry at ``index``.

        Raises:
            IndexError: If ``index`` is out of range
        """
        if index < 0 or index >= len(self._entries):
            raise IndexError(f"No serial at position {index}")
        entry = self._entries.pop(index)
        logger.info(f"Serial {entry.number} removed")
        return entry

    def contains(self, number: str) -> bool:
        return any(entry.number == number for entry in self._entries)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def last(self) -> Optional["ScannedSerial"]:
        return self._entries[-1] if self._entries else None

    def numbers(self) -> List[str]:
        return [entry.number for entry in self._entries]

    def to_list(self) -> List["ScannedSerial"]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator["ScannedSerial"]:
        return iter(list(self._entries))

    def __getitem__(self, index: int) -> "ScannedSerial":
        return self._entries[index]
