import pytest

from rogue_resident.challenges.models import Grade
from rogue_resident.config import DifficultyProfile, load_game_config
from rogue_resident.errors import ConfigurationError
from rogue_resident.map.models import SAMPLED_NODE_TYPES, Difficulty, NodeType


def test_bundled_defaults():
    cfg = load_game_config()
    assert cfg.profile_for(Difficulty.HARD) == DifficultyProfile(min_layers=5, max_layer_width=3)
    assert cfg.starting_resources.lives == 4
    assert cfg.starting_resources.insight == 100
    assert cfg.rewards.grade_multipliers[Grade.S] == 2.0
    assert cfg.rewards.boss_research_points == 25
    assert cfg.retry_policy.is_retryable(NodeType.CLINICAL)
    assert cfg.inventory_capacity == 10


def test_difficulty_profiles_differ():
    cfg = load_game_config()
    profiles = [cfg.profile_for(d) for d in Difficulty]
    assert len(set(profiles)) == len(profiles)
    assert cfg.profile_for(Difficulty.EASY) == DifficultyProfile(min_layers=3, max_layer_width=5)


def test_node_rewards_and_storage_offer():
    cfg = load_game_config()
    assert cfg.node_reward(NodeType.START) == 10
    assert cfg.node_reward(NodeType.STORAGE) == 25
    assert cfg.node_reward(NodeType.VENDOR) == 0
    # Challenge nodes pay through grading, not a flat reward
    assert cfg.node_reward(NodeType.CLINICAL) == 0
    assert cfg.storage_offer_size == 2


def test_weights_follow_difficulty():
    cfg = load_game_config()
    normal = cfg.weights_for(Difficulty.NORMAL)
    assert list(normal) == list(SAMPLED_NODE_TYPES)
    assert normal[NodeType.CLINICAL] == 30
    assert cfg.weights_for(Difficulty.EASY)[NodeType.STORAGE] == 15
    hard = cfg.weights_for(Difficulty.HARD)
    assert hard[NodeType.STORAGE] == 5
    assert hard[NodeType.CLINICAL] == 33


def test_override_file(tmp_path):
    p = tmp_path / "game.yaml"
    p.write_text("failure_damage: 2\ninventory_capacity: 3\n", encoding="utf-8")
    cfg = load_game_config(p)
    assert cfg.failure_damage == 2
    assert cfg.inventory_capacity == 3
    # Keys not in the override keep their defaults
    assert cfg.starting_resources.lives == 4


def test_env_override(tmp_path, monkeypatch):
    p = tmp_path / "env.yaml"
    p.write_text("retry_policy:\n  boss: false\n", encoding="utf-8")
    monkeypatch.setenv("RR_CONFIG", str(p))
    cfg = load_game_config()
    assert not cfg.retry_policy.is_retryable(NodeType.BOSS)
    assert cfg.retry_policy.is_retryable(NodeType.CLINICAL)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        load_game_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize(
    "text",
    [
        "key: [unclosed\n",
        "- just\n- a list\n",
        "difficulty_profiles:\n  easy:\n    min_layers: 4\n    max_layer_width: 4\n",
        "difficulty_profiles:\n  easy: {min_layers: 2, max_layer_width: 4}\n"
        "  normal: {min_layers: 4, max_layer_width: 4}\n  hard: {min_layers: 5, max_layer_width: 3}\n",
        "node_type_weights:\n  clinical: -1\n",
        "node_type_weights:\n  teleporter: 3\n",
        "starting_resources:\n  lives: 6\n  max_lives: 4\n",
        "rewards:\n  grade_multipliers:\n    S: 2.0\n",
        "node_insight_rewards:\n  storage: -5\n",
        "node_insight_rewards:\n  lobby: 5\n",
        "storage_offer_size: 0\n",
    ],
)
def test_invalid_overrides(tmp_path, text):
    p = tmp_path / "bad.yaml"
    p.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_game_config(p)
