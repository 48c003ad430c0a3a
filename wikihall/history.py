from typing import Iterator, List, Optional

from wikihall.models import ArticleSnapshot


class HistoryStack:
    """LIFO record of the hallways the player has walked out of."""

    def __init__(self):
        self._snapshots: List[ArticleSnapshot] = []

    def push(self, snapshot: ArticleSnapshot) -> None:
        self._snapshots.append(snapshot)

    def pop(self) -> Optional[ArticleSnapshot]:
        if not self._snapshots:
            return None
        return self._snapshots.pop()

    def peek(self) -> Optional[ArticleSnapshot]:
        return self._snapshots[-1] if self._snapshots else None

    def clear(self) -> None:
        self._snapshots.clear()

    def titles(self) -> List[str]:
        return [snapshot.title for snapshot in self._snapshots]

    def __len__(self) -> int:
        return len(self._snapshots)

    def __bool__(self) -> bool:
        return bool(self._snapshots)

    def __iter__(self) -> Iterator[ArticleSnapshot]:
        return iter(list(self._snapshots))
