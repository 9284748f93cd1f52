import sys
from pathlib import Path

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from rogue_resident.challenges.models import ImagingStage, MeasurementStage, NumericStage, SelectionStage  # noqa: E402


def _correct(stage):
    if isinstance(stage, NumericStage):
        return stage.correct_value
    if isinstance(stage, MeasurementStage):
        return [r.expected for r in stage.readings]
    if isinstance(stage, SelectionStage) and not stage.multi_select:
        return stage.correct[0]
    return list(stage.correct)


def _wrong(stage):
    if isinstance(stage, NumericStage):
        return stage.correct_value + abs(stage.correct_value) + 1000
    if isinstance(stage, MeasurementStage):
        return [r.expected + abs(r.expected) + 1000 for r in stage.readings]
    if isinstance(stage, SelectionStage):
        pick = next(o for o in stage.options if o not in stage.correct)
        return [pick] if stage.multi_select else pick
    if isinstance(stage, ImagingStage):
        return [next(s for s in stage.structures if s not in stage.correct)]
    raise TypeError(stage)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    monkeypatch.delenv("RR_CONFIG", raising=False)
    monkeypatch.delenv("RR_LOG_LEVEL", raising=False)
    monkeypatch.setenv("RR_SAVE_DIR", str(tmp_path / "saves"))


@pytest.fixture
def correct_answer():
    return _correct


@pytest.fixture
def wrong_answer():
    return _wrong
