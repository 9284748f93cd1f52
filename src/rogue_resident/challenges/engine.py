"""Challenge stage machine.

Pure transitions over ``ChallengeState``:

    introduction -> challenge -> outcome -> completed | failed

Timers are driven from outside: the caller feeds elapsed ticks to ``advance``.
Nothing here touches the map graph or the resource ledger; the outcome is
handed back for the caller to apply.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Mapping, Optional, Tuple

from ..errors import StateConflictError, ValidationError
from .grading import DEFAULT_BASE_INSIGHT, DEFAULT_GRADE_MULTIPLIERS, grade_for_ratio, insight_reward
from .models import (
    ChallengeDescriptor,
    ChallengeOutcome,
    ChallengePhase,
    ChallengeState,
    Grade,
    Stage,
    StageResult,
)

logger = logging.getLogger(__name__)

Transition = Tuple[ChallengeState, Optional[ChallengeOutcome]]


def activate_challenge(
    node_id: str,
    descriptor: ChallengeDescriptor,
    *,
    base_insight: Optional[int] = None,
    grade_multipliers: Optional[Mapping[Grade, float]] = None,
) -> ChallengeState:
    """Create the challenge state for a freshly activated node.

    The descriptor's own ``base_insight`` wins over the ``base_insight`` argument.
    """
    if not isinstance(descriptor, ChallengeDescriptor):
        raise ValidationError(f"Expected a challenge descriptor, got {type(descriptor).__name__}")
    base = descriptor.base_insight
    if base is None:
        base = DEFAULT_BASE_INSIGHT if base_insight is None else base_insight
    state = ChallengeState(
        id=f"{node_id}:{descriptor.id}",
        node_id=node_id,
        descriptor=descriptor,
        remaining_ticks=descriptor.time_limit,
        base_insight=base,
        grade_multipliers=dict(grade_multipliers or DEFAULT_GRADE_MULTIPLIERS),
    )
    logger.debug("Challenge %s activated on node %s (%d stages)", descriptor.id, node_id, len(descriptor.stages))
    return state


def begin_challenge(state: ChallengeState) -> ChallengeState:
    _require_phase(state, ChallengePhase.INTRODUCTION, "begin")
    return replace(state, phase=ChallengePhase.CHALLENGE)


def current_stage(state: ChallengeState) -> Optional[Stage]:
    if state.phase is not ChallengePhase.CHALLENGE:
        return None
    return state.stages[state.current_stage]


def submit_answer(state: ChallengeState, stage_id: str, answer: Any) -> Transition:
    """Record an answer for the current stage.

    Raises StateConflictError outside the challenge phase or when ``stage_id`` is
    not the current stage, and ValidationError for an unknown stage id or a
    malformed answer. Returns the outcome once the last stage has been answered.
    """
    _require_phase(state, ChallengePhase.CHALLENGE, "submit an answer to")
    try:
        state.descriptor.stage_index(stage_id)
    except KeyError:
        raise ValidationError(f"Challenge {state.id} has no stage '{stage_id}'") from None
    stage = state.stages[state.current_stage]
    if stage_id != stage.id:
        raise StateConflictError(
            f"Challenge {state.id}: stage '{stage_id}' is not the current stage ('{stage.id}')"
        )
    accepted = stage.evaluate(answer)
    result = StageResult(stage_id=stage.id, accepted=accepted, answer=_plain(stage.normalize(answer)))
    logger.debug("Challenge %s stage %s %s", state.id, stage.id, "accepted" if accepted else "rejected")

    results = state.results + (result,)
    if len(results) < len(state.stages):
        return replace(state, results=results, current_stage=state.current_stage + 1), None
    return _finalize(replace(state, results=results), timed_out=False)


def advance(state: ChallengeState, elapsed_ticks: int) -> Transition:
    """Consume ``elapsed_ticks`` from the challenge timer.

    Only the challenge phase is timed; in any other phase, or for an untimed
    challenge, the state is returned unchanged. Reaching zero expires the challenge.
    """
    if elapsed_ticks < 0:
        raise ValidationError(f"elapsed_ticks must be >= 0, got {elapsed_ticks}")
    if state.phase is not ChallengePhase.CHALLENGE or state.remaining_ticks is None:
        return state, None
    remaining = max(0, state.remaining_ticks - elapsed_ticks)
    state = replace(state, remaining_ticks=remaining)
    if remaining == 0:
        return expire(state)
    return state, None


def expire(state: ChallengeState) -> Transition:
    """Finalize on timeout: unanswered stages count as rejected and the challenge fails."""
    if state.phase not in (ChallengePhase.INTRODUCTION, ChallengePhase.CHALLENGE):
        raise StateConflictError(f"Challenge {state.id} cannot expire in phase '{state.phase.value}'")
    answered = {r.stage_id for r in state.results}
    missing = tuple(StageResult(stage_id=s.id, accepted=False) for s in state.stages if s.id not in answered)
    logger.info("Challenge %s timed out with %d unanswered stages", state.id, len(missing))
    return _finalize(replace(state, results=state.results + missing, remaining_ticks=0), timed_out=True)


def conclude(state: ChallengeState) -> ChallengeState:
    _require_phase(state, ChallengePhase.OUTCOME, "conclude")
    if state.outcome is None:
        raise StateConflictError(f"Challenge {state.id} reached '{state.phase.value}' without an outcome")
    phase = ChallengePhase.COMPLETED if state.outcome.success else ChallengePhase.FAILED
    return replace(state, phase=phase)


def _finalize(state: ChallengeState, *, timed_out: bool) -> Transition:
    total = len(state.stages)
    accepted = sum(1 for r in state.results if r.accepted)
    ratio = accepted / total
    grade = grade_for_ratio(ratio)
    threshold = state.descriptor.success_threshold
    if timed_out:
        success = False
    elif threshold is not None:
        success = ratio >= threshold
    else:
        success = grade is not Grade.C
    outcome = ChallengeOutcome(
        completed=True,
        grade=grade,
        success=success,
        ratio=ratio,
        insight_reward=0 if timed_out else insight_reward(grade, state.base_insight, state.grade_multipliers),
        timed_out=timed_out,
        reward_item_id=state.descriptor.reward_item_id if success else None,
    )
    logger.info(
        "Challenge %s finished: grade=%s ratio=%.2f success=%s", state.id, grade.value, ratio, success
    )
    return replace(state, phase=ChallengePhase.OUTCOME, outcome=outcome), outcome


def _require_phase(state: ChallengeState, phase: ChallengePhase, action: str) -> None:
    if state.phase is not phase:
        raise StateConflictError(
            f"Cannot {action} challenge {state.id} in phase '{state.phase.value}' (needs '{phase.value}')"
        )


def _plain(value: Any) -> Any:
    # Normalized answers are stored JSON-ready
    if isinstance(value, frozenset):
        return sorted(value)
    return value


__all__ = [
    "activate_challenge",
    "advance",
    "begin_challenge",
    "conclude",
    "current_stage",
    "expire",
    "submit_answer",
]
