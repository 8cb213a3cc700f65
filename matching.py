from typing import Iterable, Optional

from models import OccurrenceStatus
from schemas import MatchCandidate, MatchSuggestion, OccurrenceOut


def normalize_description(value: str) -> str:
    return (value or "").strip().casefold()


def is_match(candidate: MatchCandidate, occurrence: OccurrenceOut) -> bool:
    return (
        occurrence.status == OccurrenceStatus.planned
        and occurrence.direction == candidate.direction
        and occurrence.competence_month == candidate.competence_month
        and normalize_description(occurrence.description)
        == normalize_description(candidate.description)
    )


def match_planned(
    candidate: MatchCandidate, pool: Iterable[OccurrenceOut]
) -> Optional[OccurrenceOut]:
    """First still-planned occurrence a realized entry should settle against."""
    for occurrence in pool:
        if is_match(candidate, occurrence):
            return occurrence
    return None


def suggested_defaults(match: OccurrenceOut) -> MatchSuggestion:
    return MatchSuggestion(
        occurrence_id=match.id,
        account_id=match.account_id,
        category_id=match.category_id,
        planned_amount=match.planned_amount,
    )
