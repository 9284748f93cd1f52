"""Run session: sequences map traversal, challenges and resources for one run.

The core modules are pure transitions over owned aggregates. ``RunSession``
is the dispatch layer on top of them: it holds the current aggregates, applies
transitions in order, and publishes domain events on its ``EventBus``.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from .challenges.catalog import ChallengeCatalog, load_challenge_catalog
from .challenges.engine import activate_challenge, advance, begin_challenge, conclude, submit_answer
from .challenges.models import ChallengeOutcome, ChallengePhase, ChallengeState
from .config import GameConfig, load_game_config
from .economy.ledger import (
    ResourceKind,
    ResourceLedger,
    apply_delta,
    apply_modified_delta,
    spend_insight,
)
from .errors import StateConflictError, ValidationError
from .events import (
    CHALLENGE_OUTCOME,
    ITEM_ACQUIRED,
    NODE_CANCELLED,
    NODE_COMPLETED,
    NODE_SELECTED,
    RESOURCES_CHANGED,
    RUN_GAME_OVER,
    RUN_VICTORY,
    EventBus,
)
from .items.catalog import ItemCatalog, load_item_catalog
from .items.inventory import Inventory
from .items.models import Item
from .map.generator import generate_map
from .map.models import GeneratedMap, MapGenerationOptions, MapNode, NodeType
from .map.traversal import NodeGraph
from .persistence.codec import RunSnapshot
from .rng import RNGManager

logger = logging.getLogger(__name__)


class RunSession:
    def __init__(
        self,
        game_map: GeneratedMap,
        *,
        config: Optional[GameConfig] = None,
        challenges: Optional[ChallengeCatalog] = None,
        items: Optional[ItemCatalog] = None,
        bus: Optional[EventBus] = None,
        graph: Optional[NodeGraph] = None,
        ledger: Optional[ResourceLedger] = None,
        inventory: Optional[Inventory] = None,
        challenge: Optional[ChallengeState] = None,
    ) -> None:
        self.config = config or load_game_config()
        self.challenges = challenges if challenges is not None else load_challenge_catalog()
        self.items = items if items is not None else load_item_catalog()
        self.bus = bus or EventBus()
        self.map = game_map
        self.graph = graph or NodeGraph(game_map, retry_policy=self.config.retry_policy)
        if ledger is None:
            start = self.config.starting_resources
            ledger = ResourceLedger(
                lives=start.lives,
                max_lives=start.max_lives,
                insight=start.insight,
                research_points=start.research_points,
            )
        self.ledger = ledger
        self.inventory = inventory if inventory is not None else Inventory(self.config.inventory_capacity)
        self.challenge = challenge
        self._rngm = RNGManager(game_map.seed)
        # Item ids revealed at the active storage node
        self.offer: Tuple[str, ...] = ()
        active = self.active_node
        if active is not None and active.type is NodeType.STORAGE:
            self.offer = self._storage_offer(active.id)

    @classmethod
    def new(
        cls,
        options: Optional[MapGenerationOptions] = None,
        *,
        config: Optional[GameConfig] = None,
        challenges: Optional[ChallengeCatalog] = None,
        items: Optional[ItemCatalog] = None,
        bus: Optional[EventBus] = None,
    ) -> "RunSession":
        """Generate a map and start a run on it.

        Challenge nodes reference catalog scenarios unless the options bring their own pool.
        """
        config = config or load_game_config()
        challenges = challenges if challenges is not None else load_challenge_catalog()
        options = options or MapGenerationOptions()
        if options.scenario_pool is None:
            options = replace(options, scenario_pool=challenges.scenario_pool())
        game_map = generate_map(options, config)
        logger.info("New run started (seed=%d)", game_map.seed)
        return cls(game_map, config=config, challenges=challenges, items=items, bus=bus)

    # --- Queries ---
    @property
    def game_over(self) -> bool:
        return self.ledger.game_over

    @property
    def victory(self) -> bool:
        return self.graph.is_victory()

    @property
    def active_node(self) -> Optional[MapNode]:
        nid = self.graph.active_node_id
        return self.map.node(nid) if nid else None

    def available_nodes(self) -> List[str]:
        return self.graph.available_nodes()

    # --- Transitions ---
    def select(self, node_id: str) -> Optional[ChallengeState]:
        """Activate an available node; returns the challenge it carries, if any."""
        self._ensure_running()
        graph = self.graph.select(node_id)
        node = self.map.node(node_id)
        descriptor = self.challenges.for_node(node, self._rngm.context_rng("challenge", node_id))
        challenge = None
        if descriptor is not None:
            rewards = self.config.rewards
            challenge = activate_challenge(
                node_id,
                descriptor,
                base_insight=rewards.base_insight,
                grade_multipliers=rewards.grade_multipliers,
            )
        offer = self._storage_offer(node_id) if node.type is NodeType.STORAGE else ()
        self.graph, self.challenge, self.offer = graph, challenge, offer
        self.bus.publish(
            NODE_SELECTED,
            {
                "node_id": node_id,
                "type": node.type.value,
                "challenge_id": descriptor.id if descriptor else None,
                "offer": list(offer),
            },
        )
        return challenge

    def begin(self) -> ChallengeState:
        self.challenge = begin_challenge(self._require_challenge())
        return self.challenge

    def submit(self, stage_id: str, answer: Any) -> Optional[ChallengeOutcome]:
        state, outcome = submit_answer(self._require_challenge(), stage_id, answer)
        self.challenge = state
        if outcome is not None:
            self._publish_outcome(state, outcome)
        return outcome

    def tick(self, elapsed_ticks: int) -> Optional[ChallengeOutcome]:
        """Feed the external timer; returns the outcome if the challenge timed out."""
        if self.challenge is None:
            return None
        state, outcome = advance(self.challenge, elapsed_ticks)
        self.challenge = state
        if outcome is not None:
            self._publish_outcome(state, outcome)
        return outcome

    def resolve_challenge(self) -> ChallengeState:
        """Conclude a finished challenge and apply its outcome to the map and resources.

        Success completes the node, grants insight (plus research points on the
        boss) and the reward item when there is room. Failure costs lives and
        returns the node to the map according to the retry policy.
        """
        state = conclude(self._require_challenge())
        outcome = state.outcome
        if outcome is None:
            raise StateConflictError(f"Challenge {state.id} has no outcome")
        node_id = state.node_id
        node = self.map.node(node_id)
        active = self.inventory.active_items()

        graph = self.graph.complete(node_id, outcome.success)
        ledger = self.ledger
        if state.phase is ChallengePhase.COMPLETED:
            ledger = apply_modified_delta(ledger, ResourceKind.INSIGHT, outcome.insight_reward, active).ledger
            if node.type is NodeType.BOSS:
                ledger = apply_modified_delta(
                    ledger, ResourceKind.RESEARCH_POINTS, self.config.rewards.boss_research_points, active
                ).ledger
        else:
            ledger = apply_modified_delta(ledger, ResourceKind.LIVES, -self.config.failure_damage, active).ledger

        self.graph, self.challenge = graph, None
        self._set_ledger(ledger, reason=f"challenge:{state.descriptor.id}")
        if outcome.success and outcome.reward_item_id:
            self._grant_item(outcome.reward_item_id)
        self.bus.publish(NODE_COMPLETED, {"node_id": node_id, "success": outcome.success})
        self._check_end()
        return state

    def complete_active(self, choice: Optional[str] = None) -> None:
        """Complete an active node that carries no challenge (start, storage, vendor).

        At a storage node ``choice`` keeps one of the offered items. The node's
        configured insight reward is applied before the item is added.
        """
        self._ensure_running()
        node = self.active_node
        if node is None:
            raise StateConflictError("No node is active")
        if self.challenge is not None:
            raise StateConflictError(f"Node {node.id} has a challenge in progress")
        if choice is not None:
            if choice not in self.offer:
                raise ValidationError(f"Item '{choice}' is not on offer at node {node.id}")
            if self.inventory.is_full():
                raise StateConflictError("Inventory is full")

        self.graph = self.graph.complete(node.id, True)
        self.offer = ()
        reward = self.config.node_reward(node.type)
        if reward:
            result = apply_modified_delta(
                self.ledger, ResourceKind.INSIGHT, reward, self.inventory.active_items()
            )
            self._set_ledger(result.ledger, reason=f"node:{node.id}")
        if choice is not None:
            self.inventory.add(self.items.get(choice))
            self.bus.publish(ITEM_ACQUIRED, {"item_id": choice, "source": "storage"})
        self.bus.publish(NODE_COMPLETED, {"node_id": node.id, "success": True})
        self._check_end()

    def cancel(self) -> None:
        """Abandon the active node; it returns to available and its challenge is discarded."""
        node = self.active_node
        if node is None:
            raise StateConflictError("No node is active")
        self.graph = self.graph.cancel(node.id)
        self.challenge = None
        self.offer = ()
        self.bus.publish(NODE_CANCELLED, {"node_id": node.id})

    def purchase(self, item_id: str) -> Item:
        """Buy an item at the active vendor node with insight."""
        self._ensure_running()
        node = self.active_node
        if node is None or node.type is not NodeType.VENDOR:
            raise StateConflictError("Items can only be purchased at an active vendor node")
        if item_id not in self.items:
            raise ValidationError(f"Unknown item '{item_id}'")
        item = self.items.get(item_id)
        if item_id in self.inventory:
            raise StateConflictError(f"Item '{item_id}' is already owned")
        if self.inventory.is_full():
            raise StateConflictError("Inventory is full")
        ledger = spend_insight(self.ledger, item.cost)
        self.inventory.add(item)
        self._set_ledger(ledger, reason=f"purchase:{item_id}")
        self.bus.publish(ITEM_ACQUIRED, {"item_id": item_id, "source": "vendor"})
        return item

    def adjust(self, kind: ResourceKind, amount: int) -> None:
        """Apply a raw resource change (no item modifiers)."""
        self._ensure_running()
        result = apply_delta(self.ledger, kind, amount)
        self._set_ledger(result.ledger, reason="adjust")
        self._check_end()

    # --- Persistence ---
    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            game_map=self.map,
            graph=self.graph,
            ledger=self.ledger,
            inventory=self.inventory,
            challenge=self.challenge,
        )

    @classmethod
    def restore(
        cls,
        snapshot: RunSnapshot,
        *,
        config: Optional[GameConfig] = None,
        challenges: Optional[ChallengeCatalog] = None,
        items: Optional[ItemCatalog] = None,
        bus: Optional[EventBus] = None,
    ) -> "RunSession":
        config = config or load_game_config()
        graph = NodeGraph(
            snapshot.game_map,
            snapshot.graph.statuses,
            retry_policy=config.retry_policy,
            sealed=snapshot.graph.sealed,
        )
        return cls(
            snapshot.game_map,
            config=config,
            challenges=challenges,
            items=items,
            bus=bus,
            graph=graph,
            ledger=snapshot.ledger,
            inventory=snapshot.inventory,
            challenge=snapshot.challenge,
        )

    # --- Internal helpers ---
    def _ensure_running(self) -> None:
        if self.game_over:
            raise StateConflictError("The run is over: no lives left")
        if self.victory:
            raise StateConflictError("The run is over: the boss has been defeated")

    def _require_challenge(self) -> ChallengeState:
        if self.challenge is None:
            raise StateConflictError("No challenge is in progress")
        return self.challenge

    def _publish_outcome(self, state: ChallengeState, outcome: ChallengeOutcome) -> None:
        payload: Dict[str, Any] = {"node_id": state.node_id, "challenge_id": state.descriptor.id}
        payload.update(outcome.to_dict())
        self.bus.publish(CHALLENGE_OUTCOME, payload)

    def _set_ledger(self, ledger: ResourceLedger, *, reason: str) -> None:
        if ledger == self.ledger:
            return
        old = self.ledger
        self.ledger = ledger
        self.bus.publish(RESOURCES_CHANGED, {"old": old.to_dict(), "new": ledger.to_dict(), "reason": reason})

    def _storage_offer(self, node_id: str) -> Tuple[str, ...]:
        # Seeded per node, so a restored run reveals the same items
        candidates = [i.id for i in self.items.all() if i.id not in self.inventory]
        k = min(self.config.storage_offer_size, len(candidates))
        return tuple(self._rngm.context_rng("storage", node_id).sample(candidates, k))

    def _grant_item(self, item_id: str) -> None:
        if item_id not in self.items or item_id in self.inventory:
            return
        if self.inventory.is_full():
            logger.info("Reward item %s dropped: inventory full", item_id)
            return
        self.inventory.add(self.items.get(item_id))
        self.bus.publish(ITEM_ACQUIRED, {"item_id": item_id, "source": "reward"})

    def _check_end(self) -> None:
        if self.game_over:
            logger.info("Game over")
            self.bus.publish(RUN_GAME_OVER, {"seed": self.map.seed})
        elif self.victory:
            logger.info("Boss defeated")
            self.bus.publish(RUN_VICTORY, {"seed": self.map.seed, "ledger": self.ledger.to_dict()})


__all__ = ["RunSession"]
