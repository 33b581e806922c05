"""
Append-only transcript timeline. The single record the assessment is computed from.
"""
import logging
from typing import Iterator, List, Tuple

from .models import Speaker, TranscriptEntry

logger = logging.getLogger("timeline")


class TranscriptTimeline:
    """Ordered log of turns with session-relative timestamps.

    Entries are never edited or removed; a correction is a new entry.
    """

    def __init__(self):
        self._entries: List[TranscriptEntry] = []

    def append(self, entry: TranscriptEntry) -> TranscriptEntry:
        if self._entries and entry.timestamp < self._entries[-1].timestamp:
            raise ValueError(
                f"Timestamp {entry.timestamp} is earlier than previous entry "
                f"({self._entries[-1].timestamp})"
            )
        self._entries.append(entry)
        logger.debug(f"Timeline +{entry.speaker.value} @{entry.timestamp}ms: {entry.message[:60]!r}")
        return entry

    def all(self) -> Tuple[TranscriptEntry, ...]:
        return tuple(self._entries)

    def duration_ms(self) -> int:
        """Time from the first to the last entry."""
        if not self._entries:
            return 0
        return self._entries[-1].timestamp - self._entries[0].timestamp

    def turn_count(self) -> int:
        return len(self._entries)

    def candidate_entries(self) -> List[TranscriptEntry]:
        return [e for e in self._entries if e.speaker is Speaker.CANDIDATE]

    def question_entries(self) -> List[TranscriptEntry]:
        return [e for e in self._entries if e.is_question]

    def is_empty(self) -> bool:
        return not self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(tuple(self._entries))
