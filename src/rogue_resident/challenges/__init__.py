from .engine import activate_challenge, advance, begin_challenge, conclude, current_stage, expire, submit_answer
from .grading import grade_for_ratio, insight_reward
from .models import (
    CHALLENGE_VARIANTS,
    BossChallenge,
    ChallengeDescriptor,
    ChallengeOutcome,
    ChallengePhase,
    ChallengeState,
    ClinicalChallenge,
    EducationalChallenge,
    Grade,
    ImagingStage,
    MeasurementStage,
    NumericStage,
    QAChallenge,
    Reading,
    SelectionStage,
    StageResult,
)

__all__ = [
    "CHALLENGE_VARIANTS",
    "BossChallenge",
    "ChallengeDescriptor",
    "ChallengeOutcome",
    "ChallengePhase",
    "ChallengeState",
    "ClinicalChallenge",
    "EducationalChallenge",
    "Grade",
    "ImagingStage",
    "MeasurementStage",
    "NumericStage",
    "QAChallenge",
    "Reading",
    "SelectionStage",
    "StageResult",
    "activate_challenge",
    "advance",
    "begin_challenge",
    "conclude",
    "current_stage",
    "expire",
    "grade_for_ratio",
    "insight_reward",
    "submit_answer",
]
