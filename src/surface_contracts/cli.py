"""Command line entry point for release planning.

    surface-plan plan --operations ops.yaml --registry registry.yaml --release 2024-06-01 --commit
    surface-plan show --registry registry.yaml GetPetsByName
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from .config import DEFAULT_CONFIG_FILE, PlannerConfig
from .errors import ContractViolationError
from .overlay import OverlaySet
from .registry import SurfaceRegistry
from .release import plan_release
from .surface import build_surface
from .types import Operation

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_INPUT_ERROR = 2


def load_operations(path: Path) -> List[Operation]:
    """Read operation models from YAML.

    Accepts either a list of operations or a mapping with an
    ``operations`` key.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or []
    if isinstance(data, dict):
        data = data.get("operations") or []
    return [Operation.from_dict(entry) for entry in data]


def _load_registry(path: Path) -> SurfaceRegistry:
    if not path.exists():
        logger.info("No registry at %s, starting from an empty surface", path)
        return SurfaceRegistry()
    return SurfaceRegistry.load(path)


def _load_config(path: Optional[Path]) -> PlannerConfig:
    if path is None and Path(DEFAULT_CONFIG_FILE).exists():
        path = Path(DEFAULT_CONFIG_FILE)
    return PlannerConfig.load(path)


def _load_overlays(path: Optional[Path]) -> OverlaySet:
    return OverlaySet.from_yaml(path) if path else OverlaySet()


def cmd_plan(args: argparse.Namespace) -> int:
    config = _load_config(args.config)
    registry = _load_registry(args.registry)
    operations = load_operations(args.operations)
    overlays = _load_overlays(args.overlays)

    release = plan_release(
        operations,
        registry,
        overlays=overlays,
        config=config,
        release=args.release,
        max_workers=args.jobs,
    )
    sys.stdout.write(release.report.to_yaml_string())

    if args.commit:
        if args.strict and release.report.has_rejections:
            logger.error("Not committing: release has rejected operations")
            return EXIT_REJECTED
        release.commit(registry)
        registry.save(args.registry)
        logger.info("Registry written to %s", args.registry)

    if args.strict and release.report.has_rejections:
        return EXIT_REJECTED
    return EXIT_OK


def cmd_show(args: argparse.Namespace) -> int:
    registry = SurfaceRegistry.load(args.registry)
    history = registry.history(args.operation)
    if not history:
        logger.error("No recorded history for %s", args.operation)
        return EXIT_INPUT_ERROR
    overlays = _load_overlays(args.overlays).for_operation(args.operation)
    surface = build_surface(history, overlays)
    sys.stdout.write(yaml.safe_dump(surface.to_dict(), default_flow_style=False, sort_keys=False))
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="surface-plan",
        description="Plan backward-compatible client surfaces across releases.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    plan = sub.add_parser("plan", help="Plan a release and print the planning report")
    plan.add_argument("--operations", type=Path, required=True, help="Operation models (YAML)")
    plan.add_argument("--registry", type=Path, required=True, help="Surface registry (YAML)")
    plan.add_argument("--overlays", type=Path, help="Hand-authored overlay signatures (YAML)")
    plan.add_argument("--config", type=Path, help=f"Planner config (default: ./{DEFAULT_CONFIG_FILE})")
    plan.add_argument("--release", help="Release label stamped on new signatures")
    plan.add_argument("--commit", action="store_true", help="Append accepted proposals to the registry")
    plan.add_argument("--strict", action="store_true", help="Exit 1 when any operation is rejected")
    plan.add_argument("--jobs", type=int, default=None, help="Plan operations on N threads")
    plan.set_defaults(func=cmd_plan)

    show = sub.add_parser("show", help="Print the emitted surface of one operation")
    show.add_argument("--registry", type=Path, required=True, help="Surface registry (YAML)")
    show.add_argument("--overlays", type=Path, help="Hand-authored overlay signatures (YAML)")
    show.add_argument("operation", help="Operation name")
    show.set_defaults(func=cmd_show)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (FileNotFoundError, yaml.YAMLError, ContractViolationError, ValueError, KeyError) as e:
        logger.error("%s", e)
        return EXIT_INPUT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
