"""Fingering RL — command-line entry point.

Reads a JSON note file (see :mod:`src.fingering_rl.annotate`), learns a
fingering for each hand and writes ``<stem>_fingering.json``.

Usage::

    python -m src.main notes.json --output out.json --workers 2
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from src.config import setup_hardware
from src.fingering_rl.annotate import generate_fingering, load_note_groups, save_annotations
from src.fingering_rl.config import load_config
from src.fingering_rl.errors import InvalidInputError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fingering-rl",
        description="Assign piano fingerings with Dyna-Q reinforcement learning.",
    )
    parser.add_argument("notes", type=Path, help="JSON note file with 'right'/'left' groups")
    parser.add_argument("--output", type=Path, default=None, help="Output JSON path")
    parser.add_argument("--config", type=Path, default=None, help="Fingering config YAML")
    parser.add_argument("--workers", type=int, default=None, help="Worker processes")
    parser.add_argument("--seed", type=int, default=None, help="Random seed override")
    parser.add_argument("--episodes", type=int, default=None, help="Episode budget override")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return the process exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    info = setup_hardware()

    try:
        config = load_config(args.config)
        solver = config.solver.with_overrides(random_seed=args.seed, n_episodes=args.episodes)
        config = replace(config, solver=solver)
        workers = args.workers or solver.max_workers or info["workers"]

        hands = load_note_groups(args.notes)
        result = generate_fingering(
            hands["right"],
            hands["left"],
            config=config,
            max_workers=workers,
            on_progress=lambda pct: logger.info("Progress: %.1f%%", pct),
        )
    except InvalidInputError as exc:
        print(f"Invalid input ({exc.category}): {exc}", file=sys.stderr)
        return 2
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    output = args.output or args.notes.with_name(f"{args.notes.stem}_fingering.json")
    save_annotations(result, output)
    logger.info("Fingering saved to: %s", output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
