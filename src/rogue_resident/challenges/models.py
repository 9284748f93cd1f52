from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from enum import Enum
from numbers import Real
from typing import Any, ClassVar, Dict, FrozenSet, List, Mapping, Optional, Tuple, Type, Union

from ..errors import ValidationError
from ..map.models import Difficulty, NodeType


class Grade(str, Enum):
    S = "S"
    A = "A"
    B = "B"
    C = "C"


class ChallengePhase(str, Enum):
    INTRODUCTION = "introduction"
    CHALLENGE = "challenge"
    OUTCOME = "outcome"
    COMPLETED = "completed"
    FAILED = "failed"


class StageKind(str, Enum):
    NUMERIC = "numeric"
    MEASUREMENT = "measurement"
    SELECTION = "selection"
    IMAGING = "imaging"


def _as_number(value: Any, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ValidationError(f"{what} must be a number, got {value!r}")
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        raise ValidationError(f"{what} must be finite, got {value!r}")
    return value


def within_tolerance(value: float, expected: float, tolerance_percent: float) -> bool:
    """True when ``value`` is within ``tolerance_percent`` of ``expected``.

    An expected value of zero only accepts an exact zero.
    """
    if expected == 0:
        return value == 0
    # Small absolute slack so 5% of 2.0 accepts 2.1 despite float rounding
    return abs(value - expected) <= abs(expected) * tolerance_percent / 100.0 + 1e-9


def _choice_set(answer: Any, options: Tuple[str, ...], *, multi: bool, stage_id: str) -> FrozenSet[str]:
    if isinstance(answer, str):
        chosen = {answer}
    elif multi and isinstance(answer, (list, tuple, set, frozenset)):
        chosen = set(answer)
    else:
        expected = "an option or a collection of options" if multi else "a single option"
        raise ValidationError(f"Answer for stage '{stage_id}' must be {expected}, got {answer!r}")
    unknown = [c for c in chosen if not isinstance(c, str) or c not in options]
    if unknown:
        raise ValidationError(f"Unknown option(s) for stage '{stage_id}': {unknown!r}")
    return frozenset(chosen)


def _check_id(value: str, what: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{what} must be a non-empty string")


@dataclass(frozen=True)
class NumericStage:
    """Dose-calculation style stage: one number checked against a percentage tolerance."""

    kind: ClassVar[StageKind] = StageKind.NUMERIC

    id: str
    prompt: str
    correct_value: float
    tolerance_percent: float = 5.0
    unit: str = ""

    def __post_init__(self) -> None:
        _check_id(self.id, "Stage id")
        _as_number(self.correct_value, f"Stage '{self.id}' correct_value")
        if _as_number(self.tolerance_percent, f"Stage '{self.id}' tolerance_percent") < 0:
            raise ValidationError(f"Stage '{self.id}' tolerance_percent must be >= 0")

    def normalize(self, answer: Any) -> float:
        return _as_number(answer, f"Answer for stage '{self.id}'")

    def evaluate(self, answer: Any) -> bool:
        return within_tolerance(self.normalize(answer), float(self.correct_value), float(self.tolerance_percent))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "prompt": self.prompt,
            "correct_value": self.correct_value,
            "tolerance_percent": self.tolerance_percent,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class Reading:
    label: str
    expected: float
    tolerance_percent: float = 2.0

    def to_dict(self) -> Dict[str, Any]:
        return {"label": self.label, "expected": self.expected, "tolerance_percent": self.tolerance_percent}


@dataclass(frozen=True)
class MeasurementStage:
    """A set of instrument readings; every reading has to land within its own tolerance.

    Answers are either a sequence in reading order or a mapping keyed by label.
    """

    kind: ClassVar[StageKind] = StageKind.MEASUREMENT

    id: str
    prompt: str
    readings: Tuple[Reading, ...]

    def __post_init__(self) -> None:
        _check_id(self.id, "Stage id")
        if not self.readings:
            raise ValidationError(f"Stage '{self.id}' needs at least one reading")
        labels = [r.label for r in self.readings]
        if len(set(labels)) != len(labels):
            raise ValidationError(f"Stage '{self.id}' has duplicate reading labels")
        for r in self.readings:
            _as_number(r.expected, f"Reading '{r.label}' expected")
            if _as_number(r.tolerance_percent, f"Reading '{r.label}' tolerance_percent") < 0:
                raise ValidationError(f"Reading '{r.label}' tolerance_percent must be >= 0")

    def normalize(self, answer: Any) -> List[float]:
        if isinstance(answer, Mapping):
            missing = [r.label for r in self.readings if r.label not in answer]
            extra = set(answer) - {r.label for r in self.readings}
            if missing or extra:
                raise ValidationError(
                    f"Answer for stage '{self.id}' must give exactly the readings "
                    f"{[r.label for r in self.readings]}"
                )
            values = [answer[r.label] for r in self.readings]
        elif isinstance(answer, (list, tuple)):
            if len(answer) != len(self.readings):
                raise ValidationError(
                    f"Answer for stage '{self.id}' needs {len(self.readings)} readings, got {len(answer)}"
                )
            values = list(answer)
        else:
            raise ValidationError(f"Answer for stage '{self.id}' must be a list or mapping of readings")
        return [_as_number(v, f"Reading for stage '{self.id}'") for v in values]

    def evaluate(self, answer: Any) -> bool:
        values = self.normalize(answer)
        return all(
            within_tolerance(v, float(r.expected), float(r.tolerance_percent)) for v, r in zip(values, self.readings)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "prompt": self.prompt,
            "readings": [r.to_dict() for r in self.readings],
        }


@dataclass(frozen=True)
class SelectionStage:
    """Parameter selection: accepted iff the chosen set equals the correct set."""

    kind: ClassVar[StageKind] = StageKind.SELECTION

    id: str
    prompt: str
    options: Tuple[str, ...]
    correct: Tuple[str, ...]
    multi_select: bool = False

    def __post_init__(self) -> None:
        _check_id(self.id, "Stage id")
        if not self.options or len(set(self.options)) != len(self.options):
            raise ValidationError(f"Stage '{self.id}' needs unique, non-empty options")
        if not self.correct or not set(self.correct) <= set(self.options):
            raise ValidationError(f"Stage '{self.id}' correct answers must be a non-empty subset of its options")
        if not self.multi_select and len(set(self.correct)) != 1:
            raise ValidationError(f"Single-select stage '{self.id}' must have exactly one correct option")

    def normalize(self, answer: Any) -> FrozenSet[str]:
        return _choice_set(answer, self.options, multi=self.multi_select, stage_id=self.id)

    def evaluate(self, answer: Any) -> bool:
        return self.normalize(answer) == frozenset(self.correct)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "prompt": self.prompt,
            "options": list(self.options),
            "correct": list(self.correct),
            "multi_select": self.multi_select,
        }


@dataclass(frozen=True)
class ImagingStage:
    """Identify structures on an image series (always multi-select)."""

    kind: ClassVar[StageKind] = StageKind.IMAGING

    id: str
    prompt: str
    structures: Tuple[str, ...]
    correct: Tuple[str, ...]
    image_series: str = ""

    def __post_init__(self) -> None:
        _check_id(self.id, "Stage id")
        if not self.structures or len(set(self.structures)) != len(self.structures):
            raise ValidationError(f"Stage '{self.id}' needs unique, non-empty structures")
        if not self.correct or not set(self.correct) <= set(self.structures):
            raise ValidationError(f"Stage '{self.id}' correct structures must be a non-empty subset")

    def normalize(self, answer: Any) -> FrozenSet[str]:
        return _choice_set(answer, self.structures, multi=True, stage_id=self.id)

    def evaluate(self, answer: Any) -> bool:
        return self.normalize(answer) == frozenset(self.correct)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "prompt": self.prompt,
            "structures": list(self.structures),
            "correct": list(self.correct),
            "image_series": self.image_series,
        }


Stage = Union[NumericStage, MeasurementStage, SelectionStage, ImagingStage]


def stage_from_dict(data: Mapping[str, Any]) -> Stage:
    try:
        kind = StageKind(data["kind"])
        if kind is StageKind.NUMERIC:
            return NumericStage(
                id=data["id"],
                prompt=data.get("prompt", ""),
                correct_value=data["correct_value"],
                tolerance_percent=data.get("tolerance_percent", 5.0),
                unit=data.get("unit", ""),
            )
        if kind is StageKind.MEASUREMENT:
            return MeasurementStage(
                id=data["id"],
                prompt=data.get("prompt", ""),
                readings=tuple(
                    Reading(label=r["label"], expected=r["expected"], tolerance_percent=r.get("tolerance_percent", 2.0))
                    for r in data["readings"]
                ),
            )
        if kind is StageKind.SELECTION:
            return SelectionStage(
                id=data["id"],
                prompt=data.get("prompt", ""),
                options=tuple(data["options"]),
                correct=tuple(data["correct"]),
                multi_select=bool(data.get("multi_select", False)),
            )
        return ImagingStage(
            id=data["id"],
            prompt=data.get("prompt", ""),
            structures=tuple(data["structures"]),
            correct=tuple(data["correct"]),
            image_series=data.get("image_series", ""),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed stage definition {dict(data)!r}: {e}") from e


# --- Challenge descriptors ---


@dataclass(frozen=True)
class ChallengeDescriptor:
    """Fields shared by every challenge variant.

    - time_limit: ticks available once the challenge phase begins; None means untimed.
    - base_insight: overrides the configured base insight reward.
    - success_threshold: when set, success means ratio >= threshold instead of grade above C.
    """

    challenge_type: ClassVar[NodeType]

    id: str
    title: str
    stages: Tuple[Stage, ...]
    description: str = ""
    difficulty: Difficulty = Difficulty.NORMAL
    time_limit: Optional[int] = None
    base_insight: Optional[int] = None
    reward_item_id: Optional[str] = None
    success_threshold: Optional[float] = None

    def __post_init__(self) -> None:
        _check_id(self.id, "Challenge id")
        if not self.stages:
            raise ValidationError(f"Challenge '{self.id}' has no stages")
        ids = [s.id for s in self.stages]
        if len(set(ids)) != len(ids):
            raise ValidationError(f"Challenge '{self.id}' has duplicate stage ids")
        if self.time_limit is not None and (isinstance(self.time_limit, bool) or self.time_limit <= 0):
            raise ValidationError(f"Challenge '{self.id}' time_limit must be a positive number of ticks")
        if self.base_insight is not None and self.base_insight < 0:
            raise ValidationError(f"Challenge '{self.id}' base_insight must be >= 0")
        if self.success_threshold is not None and not 0.0 <= self.success_threshold <= 1.0:
            raise ValidationError(f"Challenge '{self.id}' success_threshold must be within [0, 1]")
        object.__setattr__(self, "difficulty", Difficulty(self.difficulty))

    def stage_index(self, stage_id: str) -> int:
        for i, s in enumerate(self.stages):
            if s.id == stage_id:
                return i
        raise KeyError(stage_id)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.challenge_type.value}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "stages":
                value = [s.to_dict() for s in value]
            elif isinstance(value, Enum):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, Mapping):
                value = dict(value)
            out[f.name] = value
        return out


@dataclass(frozen=True)
class ClinicalChallenge(ChallengeDescriptor):
    challenge_type: ClassVar[NodeType] = NodeType.CLINICAL

    sub_type: str = "imaging-review"
    patient_history: str = ""
    prescription: str = ""
    imaging_available: Tuple[str, ...] = ()


@dataclass(frozen=True)
class QAChallenge(ChallengeDescriptor):
    challenge_type: ClassVar[NodeType] = NodeType.QA

    sub_type: str = "measurement-setup"
    equipment_type: str = ""
    specifications: Mapping[str, Any] = field(default_factory=dict)


EDUCATIONAL_AUDIENCES = ("students", "residents", "physicians", "staff")


@dataclass(frozen=True)
class EducationalChallenge(ChallengeDescriptor):
    challenge_type: ClassVar[NodeType] = NodeType.EDUCATIONAL

    sub_type: str = "concept-explanation"
    audience: str = "residents"
    topic: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.audience not in EDUCATIONAL_AUDIENCES:
            raise ValidationError(f"Challenge '{self.id}' audience must be one of {EDUCATIONAL_AUDIENCES}")


@dataclass(frozen=True)
class BossChallenge(ChallengeDescriptor):
    challenge_type: ClassVar[NodeType] = NodeType.BOSS

    sub_type: str = "calibration"
    phase: int = 1
    ionix_energy: int = 85
    ionix_stability: int = 50
    ionix_sentience: int = 70

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.phase < 1:
            raise ValidationError(f"Challenge '{self.id}' phase must be >= 1")
        for name in ("ionix_energy", "ionix_stability", "ionix_sentience"):
            if not 0 <= getattr(self, name) <= 100:
                raise ValidationError(f"Challenge '{self.id}' {name} must be within [0, 100]")


CHALLENGE_VARIANTS: Dict[NodeType, Type[ChallengeDescriptor]] = {
    cls.challenge_type: cls for cls in (ClinicalChallenge, QAChallenge, EducationalChallenge, BossChallenge)
}


def descriptor_from_dict(data: Mapping[str, Any]) -> ChallengeDescriptor:
    """Build the descriptor variant named by ``data["type"]``; raises ValidationError on bad input."""
    try:
        cls = CHALLENGE_VARIANTS[NodeType(data["type"])]
    except (KeyError, ValueError):
        raise ValidationError(f"Unknown challenge type: {data.get('type')!r}") from None
    kwargs = {k: v for k, v in data.items() if k != "type"}
    kwargs["stages"] = tuple(stage_from_dict(s) for s in kwargs.get("stages") or ())
    if "difficulty" in kwargs:
        try:
            kwargs["difficulty"] = Difficulty(kwargs["difficulty"])
        except ValueError as e:
            raise ValidationError(str(e)) from e
    if "imaging_available" in kwargs:
        kwargs["imaging_available"] = tuple(kwargs["imaging_available"])
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ValidationError(f"Malformed {cls.__name__} '{data.get('id')}': {e}") from e


# --- Runtime state ---


@dataclass(frozen=True)
class StageResult:
    stage_id: str
    accepted: bool
    answer: Any = None

    def to_dict(self) -> Dict[str, Any]:
        return {"stage_id": self.stage_id, "accepted": self.accepted, "answer": self.answer}

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "StageResult":
        return StageResult(stage_id=data["stage_id"], accepted=bool(data["accepted"]), answer=data.get("answer"))


@dataclass(frozen=True)
class ChallengeOutcome:
    completed: bool
    grade: Grade
    success: bool
    ratio: float
    insight_reward: int
    timed_out: bool = False
    reward_item_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed": self.completed,
            "grade": self.grade.value,
            "success": self.success,
            "ratio": self.ratio,
            "insight_reward": self.insight_reward,
            "timed_out": self.timed_out,
            "reward_item_id": self.reward_item_id,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ChallengeOutcome":
        return ChallengeOutcome(
            completed=bool(data["completed"]),
            grade=Grade(data["grade"]),
            success=bool(data["success"]),
            ratio=float(data["ratio"]),
            insight_reward=int(data["insight_reward"]),
            timed_out=bool(data.get("timed_out", False)),
            reward_item_id=data.get("reward_item_id"),
        )


@dataclass(frozen=True)
class ChallengeState:
    """Progress through one challenge on the active node.

    Never mutated; engine transitions return a new state.
    """

    id: str
    node_id: str
    descriptor: ChallengeDescriptor
    phase: ChallengePhase = ChallengePhase.INTRODUCTION
    current_stage: int = 0
    results: Tuple[StageResult, ...] = ()
    remaining_ticks: Optional[int] = None
    base_insight: int = 50
    grade_multipliers: Mapping[Grade, float] = field(default_factory=dict)
    outcome: Optional[ChallengeOutcome] = None

    @property
    def challenge_type(self) -> NodeType:
        return self.descriptor.challenge_type

    @property
    def stages(self) -> Tuple[Stage, ...]:
        return self.descriptor.stages

    @property
    def completed(self) -> bool:
        return self.outcome is not None

    @property
    def grade(self) -> Optional[Grade]:
        return self.outcome.grade if self.outcome else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "node_id": self.node_id,
            "descriptor": self.descriptor.to_dict(),
            "phase": self.phase.value,
            "current_stage": self.current_stage,
            "results": [r.to_dict() for r in self.results],
            "remaining_ticks": self.remaining_ticks,
            "base_insight": self.base_insight,
            "grade_multipliers": {g.value: m for g, m in self.grade_multipliers.items()},
            "outcome": self.outcome.to_dict() if self.outcome else None,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ChallengeState":
        outcome = data.get("outcome")
        remaining = data.get("remaining_ticks")
        return ChallengeState(
            id=data["id"],
            node_id=data["node_id"],
            descriptor=descriptor_from_dict(data["descriptor"]),
            phase=ChallengePhase(data["phase"]),
            current_stage=int(data["current_stage"]),
            results=tuple(StageResult.from_dict(r) for r in data.get("results", [])),
            remaining_ticks=int(remaining) if remaining is not None else None,
            base_insight=int(data.get("base_insight", 50)),
            grade_multipliers={Grade(g): float(m) for g, m in (data.get("grade_multipliers") or {}).items()},
            outcome=ChallengeOutcome.from_dict(outcome) if outcome else None,
        )
