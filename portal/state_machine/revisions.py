"""Review round bookkeeping.

The round is stored on the item and bumped on every revision request, but
it can always be recomputed from the status history. The two must agree;
``check_review_round`` reports when they don't.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from portal.state_machine.taxonomy import ContentStatus


@dataclass(frozen=True)
class ReviewRoundCheck:
    stored: int
    derived: int

    @property
    def consistent(self) -> bool:
        return self.stored == self.derived


def next_review_round(current_round: int, target: ContentStatus) -> int:
    if target == ContentStatus.revisions_requested:
        return current_round + 1
    return current_round


def count_review_rounds(statuses: Iterable[ContentStatus]) -> int:
    return sum(1 for status in statuses if status == ContentStatus.revisions_requested)


def check_review_round(stored_round: int, history_statuses: Iterable[ContentStatus]) -> ReviewRoundCheck:
    return ReviewRoundCheck(stored=stored_round, derived=count_review_rounds(history_statuses))
