"""Entry point for ``python -m garden``.

Loads the YAML config, restores (or seeds) the garden from the data
directory, and either runs a fixed number of cycles headless or opens a
Pygame window while the engine ticks in the background.
"""

from __future__ import annotations

import argparse
import logging
import pathlib

from garden.simulation.config import SimulationConfig
from garden.simulation.engine import SimulationEngine
from garden.storage.backend import FileStore

_DEFAULT_CONFIG = (
    pathlib.Path(__file__).resolve().parent.parent / "config" / "default.yaml"
)

logger = logging.getLogger("garden")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="garden",
        description="The Garden - a persistent, shared ecosystem simulation",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=pathlib.Path,
        default=_DEFAULT_CONFIG,
        help="Path to YAML config file (default: config/default.yaml)",
    )
    parser.add_argument(
        "-d",
        "--data-dir",
        type=pathlib.Path,
        default=pathlib.Path("garden_data"),
        help="Directory holding saved garden state (default: ./garden_data)",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Run without a window and print stats when done",
    )
    parser.add_argument(
        "--cycles",
        type=int,
        default=1,
        help="Cycles to run in headless mode (default: 1)",
    )
    parser.add_argument(
        "--cell-size",
        type=int,
        default=14,
        help="Pixel size per grid tile (default: 14)",
    )
    parser.add_argument(
        "--fps",
        type=int,
        default=30,
        help="Target frames per second (default: 30)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse CLI args, restore the garden, then run headless or windowed."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = SimulationConfig.from_yaml(args.config)
    engine = SimulationEngine(config=config, store=FileStore(args.data_dir))

    if not engine.load_state():
        logger.info("Starting fresh garden")
        engine.seed_garden()

    if args.headless:
        engine.run_cycles(args.cycles)
        stats = engine.get_stats()
        print(
            f"cycle={stats.cycle_count} season={stats.season} "
            f"elements={stats.total_elements} plants={stats.living_plants} "
            f"moisture={stats.avg_moisture} health={stats.ecosystem_health}",
        )
        return

    from garden.ui.pygame_client import PygameViewer

    viewer = PygameViewer(engine=engine, cell_size=args.cell_size)
    engine.start()
    try:
        viewer.run(fps=args.fps)
    finally:
        engine.stop()
        engine.save_state()


if __name__ == "__main__":
    main()
