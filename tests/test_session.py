import pytest

from rogue_resident.challenges.models import ChallengePhase
from rogue_resident.economy.ledger import ResourceKind
from rogue_resident.errors import InsufficientInsightError, StateConflictError, ValidationError
from rogue_resident.events import (
    CHALLENGE_OUTCOME,
    ITEM_ACQUIRED,
    NODE_CANCELLED,
    NODE_SELECTED,
    RUN_GAME_OVER,
    RUN_VICTORY,
    EventBus,
)
from rogue_resident.map.models import MapGenerationOptions, NodeStatus, NodeType
from rogue_resident.session import RunSession
from rogue_resident.utils.numbers import round_half_up

CHALLENGE_TYPES = {NodeType.CLINICAL, NodeType.QA, NodeType.EDUCATIONAL, NodeType.BOSS}


def recorder(bus, *names):
    seen = []
    for name in names:
        bus.subscribe(name, seen.append)
    return seen


def to_first_challenge(session):
    """Clear non-challenge nodes until a challenge node is available; return its id."""
    while True:
        for nid in session.available_nodes():
            if session.map.node(nid).type in CHALLENGE_TYPES:
                return nid
        nid = session.available_nodes()[0]
        assert session.select(nid) is None
        session.complete_active()


def play(session, nid, answer_for):
    challenge = session.select(nid)
    session.begin()
    outcome = None
    for stage in challenge.stages:
        outcome = session.submit(stage.id, answer_for(stage))
    return outcome


def test_new_session_defaults():
    s = RunSession.new(MapGenerationOptions(seed=42))
    assert s.ledger.lives == 4
    assert s.ledger.insight == 100
    assert s.available_nodes() == [s.map.start_node_id]
    assert s.active_node is None
    challenge_nodes = [n for n in s.map.nodes if n.type in CHALLENGE_TYPES]
    assert all(n.scenario_id for n in challenge_nodes)


def test_full_run_to_victory(correct_answer):
    bus = EventBus()
    seen = recorder(bus, RUN_VICTORY, NODE_SELECTED)
    s = RunSession.new(MapGenerationOptions(seed=42), bus=bus)
    for _ in range(len(s.map.nodes)):
        if s.victory:
            break
        nid = s.available_nodes()[0]
        if s.map.node(nid).type in CHALLENGE_TYPES:
            outcome = play(s, nid, correct_answer)
            assert outcome.success
            s.resolve_challenge()
        else:
            s.select(nid)
            s.complete_active()
    assert s.victory
    assert s.ledger.lives == 4
    assert s.ledger.insight > 100
    assert s.ledger.research_points == 25
    assert "special_004" in s.inventory
    assert [e.name for e in seen].count(RUN_VICTORY) == 1
    with pytest.raises(StateConflictError):
        s.adjust(ResourceKind.INSIGHT, 5)


def test_failed_challenge_costs_a_life(wrong_answer):
    s = RunSession.new(MapGenerationOptions(seed=42))
    nid = to_first_challenge(s)
    outcome = play(s, nid, wrong_answer)
    assert not outcome.success
    state = s.resolve_challenge()
    assert state.phase is ChallengePhase.FAILED
    assert s.ledger.lives == 3
    assert s.graph.status_of(nid) is NodeStatus.AVAILABLE
    assert s.challenge is None


def test_losing_last_life_ends_run(wrong_answer):
    bus = EventBus()
    seen = recorder(bus, RUN_GAME_OVER)
    s = RunSession.new(MapGenerationOptions(seed=42), bus=bus)
    s.adjust(ResourceKind.LIVES, -3)
    nid = to_first_challenge(s)
    play(s, nid, wrong_answer)
    s.resolve_challenge()
    assert s.game_over
    assert len(seen) == 1
    with pytest.raises(StateConflictError):
        s.select(nid)


def test_timeout_through_tick():
    s = RunSession.new(MapGenerationOptions(seed=42))
    nid = to_first_challenge(s)
    challenge = s.select(nid)
    assert s.tick(10) is None
    s.begin()
    outcome = s.tick(challenge.remaining_ticks)
    assert outcome.timed_out
    assert s.resolve_challenge().phase is ChallengePhase.FAILED
    assert s.ledger.lives == 3


def test_cancel_discards_challenge():
    bus = EventBus()
    seen = recorder(bus, NODE_CANCELLED)
    s = RunSession.new(MapGenerationOptions(seed=42), bus=bus)
    nid = to_first_challenge(s)
    s.select(nid)
    s.cancel()
    assert s.challenge is None
    assert s.graph.status_of(nid) is NodeStatus.AVAILABLE
    assert seen[0].payload == {"node_id": nid}
    with pytest.raises(StateConflictError):
        s.cancel()


def test_complete_active_refuses_pending_challenge():
    s = RunSession.new(MapGenerationOptions(seed=42))
    nid = to_first_challenge(s)
    s.select(nid)
    with pytest.raises(StateConflictError):
        s.complete_active()
    with pytest.raises(StateConflictError):
        s.resolve_challenge()


def test_vendor_purchases_and_item_bonus(correct_answer):
    bus = EventBus()
    seen = recorder(bus, ITEM_ACQUIRED, CHALLENGE_OUTCOME)
    s = RunSession.new(MapGenerationOptions(seed=3, node_type_weights={NodeType.VENDOR: 1.0}), bus=bus)
    with pytest.raises(StateConflictError):
        s.purchase("knowledge_002")

    s.select(s.map.start_node_id)
    s.complete_active()
    vendor = s.available_nodes()[0]
    assert s.map.node(vendor).type is NodeType.VENDOR
    assert s.select(vendor) is None
    # Completing the start node is worth 10 insight
    assert s.ledger.insight == 110
    with pytest.raises(ValidationError):
        s.purchase("no_such_item")
    assert s.ledger.insight == 110

    s.purchase("knowledge_002")
    assert s.ledger.insight == 60
    s.purchase("special_003")
    assert s.ledger.insight == 60
    with pytest.raises(InsufficientInsightError):
        s.purchase("special_005")
    assert s.ledger.insight == 60
    assert "special_005" not in s.inventory
    with pytest.raises(StateConflictError):
        s.purchase("knowledge_002")
    assert [e.payload["item_id"] for e in seen if e.name == ITEM_ACQUIRED] == ["knowledge_002", "special_003"]
    s.complete_active()

    while s.map.boss_node_id not in s.available_nodes():
        nid = s.available_nodes()[0]
        s.select(nid)
        s.complete_active()
    outcome = play(s, s.map.boss_node_id, correct_answer)
    before = s.ledger.insight
    s.resolve_challenge()
    # special_003 adds 25% to insight gains
    assert s.ledger.insight == before + round_half_up(outcome.insight_reward * 1.25)
    assert s.ledger.research_points == 25
    assert s.victory
    assert any(e.name == CHALLENGE_OUTCOME and e.payload["grade"] == "S" for e in seen)
    assert seen[-1].payload == {"item_id": "special_004", "source": "reward"}


def storage_run(bus=None):
    """A run whose every intermediate node is a storage room; the start node is already cleared."""
    s = RunSession.new(MapGenerationOptions(seed=11, node_type_weights={NodeType.STORAGE: 1.0}), bus=bus)
    s.select(s.map.start_node_id)
    s.complete_active()
    return s


def test_start_node_pays_its_reward():
    s = storage_run()
    assert s.ledger.insight == 110


def test_storage_offer_is_seeded_per_node():
    a, b = storage_run(), storage_run()
    node = a.available_nodes()[0]
    assert a.map.node(node).type is NodeType.STORAGE
    assert a.select(node) is None
    b.select(node)
    assert len(a.offer) == 2
    assert len(set(a.offer)) == 2
    assert all(item_id in a.items for item_id in a.offer)
    assert a.offer == b.offer


def test_storage_choice_grants_item_and_insight():
    bus = EventBus()
    seen = recorder(bus, NODE_SELECTED, ITEM_ACQUIRED)
    s = storage_run(bus)
    node = s.available_nodes()[0]
    s.select(node)
    offer = s.offer
    assert seen[-1].payload["offer"] == list(offer)

    elsewhere = next(i.id for i in s.items.all() if i.id not in offer)
    with pytest.raises(ValidationError):
        s.complete_active(choice=elsewhere)
    assert s.graph.status_of(node) is NodeStatus.ACTIVE

    s.complete_active(choice=offer[0])
    assert offer[0] in s.inventory
    assert offer[1] not in s.inventory
    assert s.offer == ()
    # The node reward lands before the item, so the item's bonuses do not apply to it
    assert s.ledger.insight == 135
    assert seen[-1].payload == {"item_id": offer[0], "source": "storage"}


def test_storage_can_be_left_empty_handed():
    s = storage_run()
    s.select(s.available_nodes()[0])
    s.complete_active()
    assert len(s.inventory) == 0
    assert s.ledger.insight == 135


def test_storage_offer_survives_restore():
    s = storage_run()
    s.select(s.available_nodes()[0])
    restored = RunSession.restore(s.snapshot())
    assert restored.offer == s.offer
    restored.complete_active(choice=s.offer[1])
    assert s.offer[1] in restored.inventory


def test_unknown_ids_are_validation_errors():
    s = RunSession.new(MapGenerationOptions(seed=42))
    with pytest.raises(ValidationError):
        s.select("node-999")
    assert s.active_node is None


def test_snapshot_restore_mid_challenge(correct_answer):
    s = RunSession.new(MapGenerationOptions(seed=42))
    nid = to_first_challenge(s)
    challenge = s.select(nid)
    s.begin()
    first = challenge.stages[0]
    s.submit(first.id, correct_answer(first))

    restored = RunSession.restore(s.snapshot())
    assert restored.challenge == s.challenge
    assert restored.graph.active_node_id == nid
    for stage in challenge.stages[1:]:
        restored.submit(stage.id, correct_answer(stage))
    assert restored.resolve_challenge().phase is ChallengePhase.COMPLETED
    assert restored.graph.status_of(nid) is NodeStatus.COMPLETED


def test_same_seed_same_challenges():
    a = RunSession.new(MapGenerationOptions(seed=8))
    b = RunSession.new(MapGenerationOptions(seed=8))
    na, nb = to_first_challenge(a), to_first_challenge(b)
    assert na == nb
    assert a.select(na).descriptor.id == b.select(nb).descriptor.id
