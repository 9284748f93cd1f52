from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .challenges.catalog import load_challenge_catalog
from .config import load_game_config
from .errors import RogueResidentError
from .items.catalog import load_item_catalog
from .logging_config import configure_logging
from .map.generator import generate_map
from .map.models import Difficulty, MapGenerationOptions

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="rogue-resident", description="Rogue Resident engine tools")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--config", default=None, help="Path to a YAML config file overriding the defaults")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a department map and print it as JSON")
    gen.add_argument("--seed", type=int, default=None, help="Seed; a random one is chosen and reported if omitted")
    gen.add_argument("--nodes", type=int, default=15, help="Total node count")
    gen.add_argument(
        "--difficulty", choices=[d.value for d in Difficulty], default=Difficulty.NORMAL.value
    )
    gen.add_argument("--width", type=float, default=1000.0)
    gen.add_argument("--height", type=float, default=600.0)
    gen.add_argument("--scenarios", action="store_true", help="Attach challenge scenarios from the catalog")

    sub.add_parser("check-data", help="Validate the bundled challenge and item data")
    return parser.parse_args(argv)


def _generate(args: argparse.Namespace) -> Dict[str, Any]:
    config = load_game_config(args.config)
    options = MapGenerationOptions(
        difficulty=Difficulty(args.difficulty),
        node_count=args.nodes,
        width=args.width,
        height=args.height,
        seed=args.seed,
        scenario_pool=load_challenge_catalog().scenario_pool() if args.scenarios else None,
    )
    return generate_map(options, config).to_dict()


def _check_data(args: argparse.Namespace) -> Dict[str, Any]:
    config = load_game_config(args.config)
    challenges = load_challenge_catalog()
    items = load_item_catalog()
    missing = sorted(
        {
            d.reward_item_id
            for d in (challenges.get(cid) for cid in challenges.ids())
            if d.reward_item_id and d.reward_item_id not in items
        }
    )
    return {
        "challenges": len(challenges),
        "items": len(items),
        "difficulties": sorted(d.value for d in config.difficulty_profiles),
        "missing_reward_items": missing,
    }


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.debug else logging.WARNING)
    try:
        data = _generate(args) if args.command == "generate" else _check_data(args)
    except RogueResidentError as e:
        logger.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return 2
    # Sorted keys so output can be diffed across runs
    print(json.dumps(data, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
