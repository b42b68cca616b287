from typing import Iterator, List, Tuple

from sanpo.models.domain import StatusEvent


class StatusLog:
    """Append-only, ordered status notifications of one pipeline run."""

    def __init__(self, run_id: int) -> None:
        self.run_id = run_id
        self._events: List[StatusEvent] = []

    def append(self, message: str) -> StatusEvent:
        event = StatusEvent(sequence=len(self._events), message=message, run_id=self.run_id)
        self._events.append(event)
        return event

    @property
    def events(self) -> Tuple[StatusEvent, ...]:
        return tuple(self._events)

    @property
    def messages(self) -> List[str]:
        return [event.message for event in self._events]

    def __iter__(self) -> Iterator[StatusEvent]:
        return iter(self.events)

    def __len__(self) -> int:
        return len(self._events)
