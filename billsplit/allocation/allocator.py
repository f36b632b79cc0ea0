"""
Interactive Split Session

Wraps the pure allocation engine for callers that want the push model:
hold the current state, apply user events, and hand the resulting split
records to every subscriber after each change.

The engine functions stay the source of truth. This class only keeps
state between events, notifies subscribers, and logs transitions.
"""

from typing import Any, Callable, Iterable, Optional
from uuid import UUID

from billsplit.allocation.engine import (
    AllocationEvent,
    AllocationState,
    Blur,
    IssueKind,
    Reset,
    SetAmount,
    ToggleLock,
    apply,
    initialize,
    slot_for,
    to_split_records,
)
from billsplit.audit import create_correlation_id, get_logger
from billsplit.models.expense import SplitRecord

SplitsCallback = Callable[[list[SplitRecord]], None]


class SplitAllocator:
    """
    One split being edited (an item, a fee or a whole receipt).

    Usage:
        allocator = SplitAllocator(total="10.00", participant_count=3,
                                   on_change=item_splits.replace)
        allocator.set_amount(0, "4.00")
        allocator.toggle_lock(0)
    """

    def __init__(
        self,
        total: Any,
        participant_count: int,
        consumers: Optional[Iterable[int]] = None,
        initial_splits: Optional[Iterable[Any]] = None,
        on_change: Optional[SplitsCallback] = None,
        correlation_id: Optional[UUID] = None,
    ):
        """
        Start a session with an even split.

        Args:
            total: Amount being split
            participant_count: Size of the expense's participant list
            consumers: Participant indices taking part (None: everyone)
            initial_splits: Previously saved split records to restore
            on_change: Subscriber called with the split records on change
            correlation_id: Ties this session's log events together
        """
        self._participant_count = participant_count
        self._subscribers: list[SplitsCallback] = []
        self.correlation_id = correlation_id or create_correlation_id()
        self._logger = get_logger("allocation", correlation_id=str(self.correlation_id))

        self._state = initialize(total, participant_count, consumers, initial_splits)
        self._logger.debug(
            "allocation_initialized",
            total_cents=self._state.total_cents,
            participants=list(self._state.participant_indices),
        )

        if on_change is not None:
            self.subscribe(on_change)

    @property
    def state(self) -> AllocationState:
        return self._state

    @property
    def splits(self) -> list[SplitRecord]:
        return to_split_records(self._state)

    @property
    def error(self) -> Optional[str]:
        """User-facing message for the current issue, if any."""
        return self._state.error

    def subscribe(self, callback: SplitsCallback) -> Callable[[], None]:
        """
        Register a subscriber. Returns a function that unregisters it.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def dispatch(self, event: AllocationEvent) -> AllocationState:
        """
        Apply an event and notify subscribers if the state changed.
        """
        previous = self._state
        self._state = apply(previous, event)

        if self._state == previous:
            return self._state

        self._logger.debug(
            "allocation_changed",
            event_type=type(event).__name__,
            amounts=[s.amount_cents for s in self._state.shares],
            locked=[s.locked for s in self._state.shares],
        )
        if self._state.issue is not None and self._state.issue != previous.issue:
            log = (
                self._logger.info
                if self._state.issue.kind == IssueKind.OVER_ALLOCATED
                else self._logger.debug
            )
            log(
                "allocation_issue",
                kind=self._state.issue.kind.value,
                amount_cents=self._state.issue.amount_cents,
            )

        self._notify()
        return self._state

    def set_amount(self, slot: int, value: Any) -> AllocationState:
        return self.dispatch(SetAmount(slot=slot, value=value))

    def set_participant_amount(self, participant_index: int, value: Any) -> AllocationState:
        """Same as set_amount, addressed by participant index."""
        return self.set_amount(slot_for(self._state, participant_index), value)

    def toggle_lock(self, slot: int) -> AllocationState:
        return self.dispatch(ToggleLock(slot=slot))

    def blur(self, slot: int) -> AllocationState:
        return self.dispatch(Blur(slot=slot))

    def reset(
        self,
        total: Any,
        consumers: Optional[Iterable[int]] = None,
    ) -> AllocationState:
        """New total and/or consumers. Always drops every lock."""
        return self.dispatch(Reset(
            total=total,
            participant_count=self._participant_count,
            consumers=tuple(consumers) if consumers is not None else None,
        ))

    def _notify(self) -> None:
        records = self.splits
        for callback in list(self._subscribers):
            callback(records)
