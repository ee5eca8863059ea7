"""Scan lifecycle state machine.

The only place that writes ``Scan.status``. Stages ask ``can_transition``
before starting work (to report ``ScanNotReady``) and then call
``transition``; an illegal edge raises ``InvalidTransition``.
"""

import logging
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from gamescan import metrics
from gamescan.db.models import Scan
from gamescan.enums import ScanStatus
from gamescan.errors import InvalidTransition

logger = logging.getLogger(__name__)

S = ScanStatus

LEGAL_TRANSITIONS: Dict[ScanStatus, FrozenSet[ScanStatus]] = {
    S.UPLOADED: frozenset({S.ANALYZING}),
    S.ANALYZING: frozenset({S.ANALYZED, S.ERROR}),
    # Drafting does not require a prior pricing run
    S.ANALYZED: frozenset({S.PRICING, S.DRAFTING}),
    S.PRICING: frozenset({S.PRICED, S.ERROR}),
    # Re-pricing and drafting
    S.PRICED: frozenset({S.PRICING, S.DRAFTING}),
    S.DRAFTING: frozenset({S.DRAFTED, S.ERROR}),
    # Regenerating the draft
    S.DRAFTED: frozenset({S.DRAFTING}),
    S.ERROR: frozenset(),
}

# Statuses in which a stage is waiting on the inference backend
IN_FLIGHT_STATUSES: FrozenSet[ScanStatus] = frozenset({S.ANALYZING, S.PRICING, S.DRAFTING})

# Statuses from which the user may (re-)confirm recognition results
CONFIRMABLE_STATUSES: FrozenSet[ScanStatus] = frozenset({S.ANALYZED, S.PRICED})


def can_transition(current: ScanStatus | str, target: ScanStatus | str) -> bool:
    """Whether ``current -> target`` is in the legal edge set."""
    try:
        current = ScanStatus(current)
        target = ScanStatus(target)
    except ValueError:
        return False
    return target in LEGAL_TRANSITIONS[current]


def is_terminal(status: ScanStatus | str) -> bool:
    return ScanStatus(status) is S.ERROR


def transition(
    scan: Scan,
    target: ScanStatus,
    error_message: Optional[str] = None,
) -> Scan:
    """
    Move ``scan`` to ``target`` or raise ``InvalidTransition``.

    Only mutates the in-memory row; persisting is the caller's job.

    Args:
        scan: Scan row read fresh by the calling stage
        target: Requested status
        error_message: Failure description, required context for ERROR

    Returns:
        The same scan object
    """
    current = scan.status
    if not can_transition(current, target):
        logger.error(
            "Illegal scan transition requested for %s: %s -> %s",
            scan.id,
            current,
            target.value,
        )
        raise InvalidTransition(str(current), target.value)

    scan.status = target.value
    # Touch updated_at even when no other column changes
    scan.updated_at = datetime.utcnow()
    if target is S.ERROR:
        scan.error_message = error_message or "Unknown error"

    metrics.record_transition(str(current), target.value)
    logger.debug("Scan %s: %s -> %s", scan.id, current, target.value)
    return scan
