"""Status history ledger for bookings and quotes.

Writers must already hold the entity row lock inside ``transaction.atomic``;
the ledger only appends.
"""
import logging

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = 'System'


def record_transition(entity, from_status, to_status, *, changed_by=SYSTEM_ACTOR, notes=''):
    """Append one history row. ``from_status == to_status`` marks an audit-only row."""
    return entity.status_history.create(
        from_status=from_status,
        to_status=to_status,
        changed_by=(changed_by or SYSTEM_ACTOR)[:100],
        notes=notes,
    )


def latest_entry(entity):
    return entity.status_history.order_by('-changed_at', '-id').first()


def verify_chain(entity):
    """Return a list of problems with the entity's history (empty when consistent).

    Checks that consecutive rows join up (``to_status`` of one row is the
    ``from_status`` of the next) and that the newest row matches the
    entity's current status.
    """
    entries = list(entity.status_history.order_by('changed_at', 'id'))
    if not entries:
        return [f'{entity.reference_number} has no status history']

    problems = []
    for prev, nxt in zip(entries, entries[1:]):
        if prev.to_status != nxt.from_status:
            problems.append(
                f'gap between #{prev.id} ({prev.to_status}) and #{nxt.id} ({nxt.from_status})'
            )
    if entries[-1].to_status != entity.status:
        problems.append(
            f'current status {entity.status} does not match last history entry {entries[-1].to_status}'
        )
    if problems:
        logger.warning('Status history for %s is inconsistent: %s', entity.reference_number, problems)
    return problems
