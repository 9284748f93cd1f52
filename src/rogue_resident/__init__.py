"""
Rogue Resident game-logic engine.

Procedural department maps, node progression, challenge grading, item effects
and resource bookkeeping. Nothing in this package renders or owns a timer;
every transition is a synchronous function of the current state and an event.
"""
from importlib.metadata import version, PackageNotFoundError

__all__ = ["__version__"]

try:
    __version__ = version("rogue-resident")
except PackageNotFoundError:  # pragma: no cover - during tests without packaging
    __version__ = "0.0.0"
