from typing import Optional

from loguru import logger

from core.models import TranscriptEntry, TranscriptSource


class TranscriptLog:
    """Collects streaming transcription fragments into display entries.

    Each source (user, model) keeps a running buffer for the current turn
    and at most one non-final entry showing that buffer. A turn-complete
    signal freezes every entry and empties both buffers.
    """

    def __init__(self):
        self.entries: list[TranscriptEntry] = []
        self._buffers = {source: "" for source in TranscriptSource}
        self._next_id = 0

    def buffer(self, source: TranscriptSource) -> str:
        return self._buffers[source]

    def add_partial(self, source: TranscriptSource, text: str) -> TranscriptEntry:
        """Append a fragment and refresh the source's live entry."""
        self._buffers[source] += text
        current = self._buffers[source]

        index = self._open_entry_index(source)
        if index is not None:
            entry = self.entries[index].model_copy(update={"text": current})
            self.entries[index] = entry
            return entry

        entry = TranscriptEntry(id=self._next_id, text=current, source=source)
        self._next_id += 1
        self.entries.append(entry)
        return entry

    def _open_entry_index(self, source: TranscriptSource) -> Optional[int]:
        for index in range(len(self.entries) - 1, -1, -1):
            entry = self.entries[index]
            if entry.source == source and not entry.is_final:
                return index
        return None

    def complete_turn(self) -> None:
        """Freeze all entries and reset both buffers."""
        self.entries = [
            e if e.is_final else e.model_copy(update={"is_final": True})
            for e in self.entries
        ]
        for source in self._buffers:
            self._buffers[source] = ""

    def abandon_turn(self) -> None:
        """Freeze whatever partial text exists after a transport error."""
        pending = [e for e in self.entries if not e.is_final]
        if pending:
            logger.debug("Finalizing {} partial transcript(s) after error", len(pending))
        self.complete_turn()

    def snapshot(self) -> list[dict]:
        return [e.model_dump(mode="json") for e in self.entries]
