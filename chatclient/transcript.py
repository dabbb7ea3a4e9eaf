from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Sequence, Tuple, Union

from chatshared.envelope import ChatMessage
from chatshared.log import get_logger
from chatshared.utils import iso_now

logger = get_logger(__name__)

SYSTEM_USERNAME = "System"


@dataclass(frozen=True)
class SystemNotice:
    """Join/leave line synthesized by the client; created_at is local time."""
    text: str
    created_at: str

    @property
    def username(self) -> str:
        return SYSTEM_USERNAME

    @classmethod
    def joined(cls, username: str) -> SystemNotice:
        return cls(text=f"{username} joined the chat.", created_at=iso_now())

    @classmethod
    def left(cls, username: str) -> SystemNotice:
        return cls(text=f"{username} left the chat.", created_at=iso_now())


TranscriptEntry = Union[ChatMessage, SystemNotice]

# listener(kind, entries): kind is "replace" with the full transcript,
# or "append" with the single new entry
TranscriptListener = Callable[[str, Tuple[TranscriptEntry, ...]], None]


class TranscriptStore:
    """
    Ordered log of chat entries in arrival order.

    Entries are never sorted, deduplicated or edited; server timestamps are
    kept as received. The only bulk operation is replace_all, used by history.
    """

    def __init__(self) -> None:
        self._entries: List[TranscriptEntry] = []
        self._listeners: List[TranscriptListener] = []

    def append(self, entry: TranscriptEntry) -> None:
        self._entries.append(entry)
        self._notify("append", (entry,))

    def replace_all(self, entries: Iterable[TranscriptEntry]) -> None:
        self._entries = list(entries)
        self._notify("replace", tuple(self._entries))

    def entries(self) -> Tuple[TranscriptEntry, ...]:
        return tuple(self._entries)

    def subscribe(self, listener: TranscriptListener) -> None:
        self._listeners.append(listener)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(self.entries())

    def __getitem__(self, index: int) -> TranscriptEntry:
        return self._entries[index]

    def _notify(self, kind: str, entries: Sequence[TranscriptEntry]) -> None:
        for listener in list(self._listeners):
            try:
                listener(kind, tuple(entries))
            except Exception:
                logger.exception("Transcript listener failed on %s", kind)
