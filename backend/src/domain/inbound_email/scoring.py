"""Multi-signal scoring for replies sent to a bare alias.

Pure functions over snapshots of a user's applications; no database access.
Signals and weights:

    header_match     100  thread header references a recorded message (short-circuits)
    sender_exact      80  sender equals the application's recipient address
    sender_domain     40  same domain, only for applications without sender_exact
    subject_keyword   30  subject contains job title, hospital or original subject
    recency        20/10  most recently / second most recently updated application
"""

import re
from dataclasses import dataclass
from typing import Optional, Sequence
from uuid import UUID

from models.application_message import MatchConfidence
from .models import RoutingResult, RoutingSignal, SignalType
from .recipient_parser import extract_domain

HEADER_MATCH_WEIGHT = 100
SENDER_EXACT_WEIGHT = 80
SENDER_DOMAIN_WEIGHT = 40
SUBJECT_KEYWORD_WEIGHT = 30
RECENCY_WEIGHTS = (20, 10)

HIGH_CONFIDENCE_SCORE = 80
MEDIUM_CONFIDENCE_SCORE = 50
MEDIUM_CONFIDENCE_MIN_GAP = 20

MIN_KEYWORD_LENGTH = 4

_MESSAGE_ID = re.compile(r"<([^>]+)>")


@dataclass(frozen=True)
class ApplicationCandidate:
    """Snapshot of an application as seen by the scorer.

    Candidates are passed most recently updated first. Job fields are None
    when the application has no job.
    """
    id: UUID
    recipient_email: Optional[str] = None
    subject: Optional[str] = None
    has_job: bool = False
    job_title: Optional[str] = None
    hospital_name: Optional[str] = None

    @property
    def keywords(self) -> list[str]:
        """Lowercased subject keywords, in priority order."""
        values = (self.job_title, self.hospital_name, self.subject)
        return [value.lower() for value in values if value]


def extract_message_ids(header_value: Optional[str]) -> list[str]:
    """All `<message-id>` tokens of an In-Reply-To / References header, brackets stripped."""
    if not header_value:
        return []
    return _MESSAGE_ID.findall(header_value)


def sender_signals(
    candidates: Sequence[ApplicationCandidate],
    sender_email: str,
) -> list[RoutingSignal]:
    """Exact sender and sender domain signals."""
    sender = (sender_email or "").strip().lower()
    signals = []

    exact_ids = set()
    for candidate in candidates:
        recipient = (candidate.recipient_email or "").strip().lower()
        if sender and recipient == sender:
            exact_ids.add(candidate.id)
            signals.append(RoutingSignal(
                type=SignalType.SENDER_EXACT,
                weight=SENDER_EXACT_WEIGHT,
                application_id=candidate.id,
                matched_value=candidate.recipient_email,
            ))

    sender_domain = extract_domain(sender)
    if sender_domain:
        for candidate in candidates:
            if candidate.id in exact_ids:
                continue
            if extract_domain(candidate.recipient_email) == sender_domain:
                signals.append(RoutingSignal(
                    type=SignalType.SENDER_DOMAIN,
                    weight=SENDER_DOMAIN_WEIGHT,
                    application_id=candidate.id,
                    matched_value=sender_domain,
                ))

    return signals


def subject_signals(
    candidates: Sequence[ApplicationCandidate],
    subject: str,
) -> list[RoutingSignal]:
    """At most one keyword signal per application; the first matching keyword wins."""
    subject_lower = (subject or "").lower()
    signals = []

    for candidate in candidates:
        if not candidate.has_job:
            continue
        for keyword in candidate.keywords:
            if len(keyword) >= MIN_KEYWORD_LENGTH and keyword in subject_lower:
                signals.append(RoutingSignal(
                    type=SignalType.SUBJECT_KEYWORD,
                    weight=SUBJECT_KEYWORD_WEIGHT,
                    application_id=candidate.id,
                    matched_value=keyword,
                ))
                break

    return signals


def recency_signals(candidates: Sequence[ApplicationCandidate]) -> list[RoutingSignal]:
    return [
        RoutingSignal(type=SignalType.RECENCY, weight=weight, application_id=candidate.id)
        for candidate, weight in zip(candidates, RECENCY_WEIGHTS)
    ]


def aggregate_scores(signals: Sequence[RoutingSignal]) -> list[tuple[UUID, int]]:
    """Sum weights per application and rank descending.

    Ties keep the order in which applications first received a signal.
    """
    scores: dict[UUID, int] = {}
    for signal in signals:
        if signal.application_id is None:
            continue
        scores[signal.application_id] = scores.get(signal.application_id, 0) + signal.weight

    return sorted(scores.items(), key=lambda item: item[1], reverse=True)


def classify_confidence(best: int, second: int) -> MatchConfidence:
    """Confidence tier for the top score and the runner-up score (0 if none)."""
    if best >= HIGH_CONFIDENCE_SCORE:
        return MatchConfidence.HIGH
    if best >= MEDIUM_CONFIDENCE_SCORE and (best - second) >= MEDIUM_CONFIDENCE_MIN_GAP:
        return MatchConfidence.MEDIUM
    return MatchConfidence.LOW


def score_candidates(
    candidates: Sequence[ApplicationCandidate],
    sender_email: str,
    subject: str,
) -> RoutingResult:
    """Score content and recency signals and decide whether to auto-link.

    Only high and medium confidence link the reply; low confidence leaves it
    unlinked for manual triage. All signals are returned either way.
    """
    if not candidates:
        return RoutingResult()

    signals = [
        *sender_signals(candidates, sender_email),
        *subject_signals(candidates, subject),
        *recency_signals(candidates),
    ]

    ranked = aggregate_scores(signals)
    if not ranked:
        return RoutingResult(signals=signals)

    best_id, best_score = ranked[0]
    second_score = ranked[1][1] if len(ranked) > 1 else 0
    confidence = classify_confidence(best_score, second_score)

    return RoutingResult(
        application_id=best_id if confidence != MatchConfidence.LOW else None,
        confidence=confidence,
        signals=signals,
    )
