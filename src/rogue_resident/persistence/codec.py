from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..challenges.models import ChallengeState
from ..economy.ledger import ResourceLedger
from ..errors import PersistenceError, RogueResidentError
from ..items.inventory import Inventory
from ..map.models import GeneratedMap
from ..map.traversal import NodeGraph, RetryPolicy

logger = logging.getLogger(__name__)

# Increment when making breaking changes to the snapshot layout
SCHEMA_VERSION = 1


@dataclass
class RunSnapshot:
    """Plain-data picture of a run in progress."""

    game_map: GeneratedMap
    graph: NodeGraph
    ledger: ResourceLedger
    inventory: Inventory
    challenge: Optional[ChallengeState] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema_version": SCHEMA_VERSION,
            "map": self.game_map.to_dict(),
            "graph": self.graph.to_dict(),
            "ledger": self.ledger.to_dict(),
            "inventory": self.inventory.to_dict(),
            "challenge": self.challenge.to_dict() if self.challenge else None,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any], retry_policy: Optional[RetryPolicy] = None) -> "RunSnapshot":
        try:
            game_map = GeneratedMap.from_dict(data["map"])
            challenge = data.get("challenge")
            return RunSnapshot(
                game_map=game_map,
                graph=NodeGraph.from_dict(game_map, data["graph"], retry_policy=retry_policy),
                ledger=ResourceLedger.from_dict(data["ledger"]),
                inventory=Inventory.from_dict(data["inventory"]),
                challenge=ChallengeState.from_dict(challenge) if challenge else None,
            )
        except PersistenceError:
            raise
        except (KeyError, TypeError, ValueError, RogueResidentError) as e:
            raise PersistenceError(f"Malformed run snapshot: {e}") from e


def encode_snapshot(snapshot: RunSnapshot) -> str:
    """Encode a snapshot to a pretty-printed JSON string."""
    return json.dumps(snapshot.to_dict(), ensure_ascii=False, sort_keys=True, indent=2)


def decode_snapshot(text: str, retry_policy: Optional[RetryPolicy] = None) -> RunSnapshot:
    """Decode JSON text into a RunSnapshot, migrating older layouts."""
    try:
        data: Dict[str, Any] = json.loads(text)
    except json.JSONDecodeError as e:
        raise PersistenceError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise PersistenceError("Run snapshot must be a JSON object")

    version = int(data.get("schema_version", SCHEMA_VERSION))
    if version != SCHEMA_VERSION:
        data = migrate_data(data, from_version=version, to_version=SCHEMA_VERSION)
    return RunSnapshot.from_dict(data, retry_policy=retry_policy)


def migrate_data(data: Dict[str, Any], from_version: int, to_version: int) -> Dict[str, Any]:
    """Migrate snapshot data between schema versions.

    Only version 1 exists, so anything else is rejected.
    """
    if from_version == to_version:
        return data
    if from_version > to_version:
        raise PersistenceError(f"Snapshot schema version {from_version} is newer than supported {to_version}")
    raise PersistenceError(f"No migration from snapshot schema version {from_version} to {to_version}")


__all__ = ["SCHEMA_VERSION", "RunSnapshot", "decode_snapshot", "encode_snapshot", "migrate_data"]
