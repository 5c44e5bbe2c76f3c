"""Status lifecycle shared by bookings and quotes.

Each request model owns one ``StatusWorkflow`` built from its ``Status``
choices and its ``VALID_TRANSITIONS`` table. The services layer asks the
workflow before writing a status, so the two lifecycles cannot drift apart
in how they are enforced.
"""
from .exceptions import InvalidTransitionError


class StatusWorkflow:
    def __init__(
        self,
        label,
        statuses,
        *,
        initial,
        transitions,
        terminal,
        cancelled,
        awaiting_payment,
        paid,
    ):
        self.label = label
        self.statuses = statuses
        self.initial = initial
        self.terminal = frozenset(terminal)
        self.cancelled = cancelled
        self.awaiting_payment = frozenset(awaiting_payment)
        self.paid = paid

        self._transitions = {}
        for status in statuses.values:
            targets = set(transitions.get(status, ()))
            if status not in self.terminal:
                targets.add(cancelled)
            self._transitions[status] = frozenset(targets)

    def allowed_targets(self, from_status) -> frozenset:
        return self._transitions.get(from_status, frozenset())

    def can_transition(self, from_status, to_status) -> bool:
        return to_status in self.allowed_targets(from_status)

    def validate_transition(self, from_status, to_status):
        if to_status not in self.statuses.values:
            raise InvalidTransitionError(self.label, from_status, to_status)
        if not self.can_transition(from_status, to_status):
            raise InvalidTransitionError(self.label, from_status, to_status)

    def is_terminal(self, status) -> bool:
        return status in self.terminal

    def is_awaiting_payment(self, status) -> bool:
        return status in self.awaiting_payment

    def __repr__(self):
        return f'<StatusWorkflow {self.label}>'
