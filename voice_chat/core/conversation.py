"""In-memory conversation log."""

from typing import Iterator, List, Optional, Tuple

from ..models import Role, Turn


class ConversationStore:
    """
    Append-only, ordered log of conversation turns.

    Order is chat chronology and is never rewritten. ``reset()`` swaps in a
    fresh list rather than clearing the old one, so snapshots handed out
    earlier stay valid.
    """

    def __init__(self) -> None:
        self._turns: List[Turn] = []

    def append(self, turn: Turn) -> None:
        """
        Add a turn at the end of the log.

        Raises:
            ValueError: if the content is blank, or an assistant turn does
                not directly follow a user turn
        """
        if not turn.content or not turn.content.strip():
            raise ValueError("Cannot append a turn with empty content")
        if turn.role == Role.ASSISTANT:
            last = self.last()
            if last is None or last.role != Role.USER:
                raise ValueError("An assistant turn must follow a user turn")
        self._turns.append(turn)

    def all(self) -> Tuple[Turn, ...]:
        """Read-only snapshot, oldest first."""
        return tuple(self._turns)

    def last(self) -> Optional[Turn]:
        return self._turns[-1] if self._turns else None

    def reset(self) -> None:
        self._turns = []

    def to_dicts(self) -> List[dict]:
        return [turn.to_dict() for turn in self._turns]

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self.all())
