"""Command line entry point: extract ranked contours from an image file."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from .app.application import Application
from .app.config import load_config
from .app.logging_utils.logging_config import setup_logging
from .core.errors import VisionError
from .core.vision.config import load_config as load_vision_config
from .core.vision.detectors.results import EdgeMode, PipelineResult, Surface


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="cncvision", description="Extract ranked outline contours from an image")
    p.add_argument("image", help="Path to input image")
    p.add_argument("--mode", choices=[m.value for m in EdgeMode], default=None, help="Edge detector")
    p.add_argument("--sensitivity", type=float, default=None, help="Threshold spread in (0, 1)")
    p.add_argument("--config", default=None, help="Application TOML config")
    p.add_argument("--vision-config", default=None, help="Vision YAML config")
    p.add_argument("--ready-timeout", type=float, default=None, help="Seconds to wait for the image backend")
    p.add_argument("--no-log-file", action="store_true", help="Skip logging setup")
    return p


def format_result(result: PipelineResult) -> List[str]:
    lines = [f"total={result.total} scale={result.scale:.3f}"]
    for i, contour in enumerate(result.contours):
        tag = "primary" if i == 0 else f"secondary[{i - 1}]"
        lines.append(
            f"{tag}: area={contour.area:.1f} bbox={contour.bbox} points={len(contour.points)}"
        )
    return lines


async def run_file(app: Application, image_path: str, options: dict) -> PipelineResult:
    """Load ``image_path``, wait for the backend and run one detection."""
    await app.start()
    surface = Surface.from_path(image_path)
    return await app.submit_detect(surface, options, description=f"contours of {Path(image_path).name}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(Path(args.config) if args.config else None)
    if config.logging.enable and not args.no_log_file:
        setup_logging(Path(config.logging.config) if config.logging.config else None)
    if args.ready_timeout is not None:
        config.backend.ready_timeout = args.ready_timeout
    vision_cfg = load_vision_config(args.vision_config or config.vision_config or None)

    options = {}
    if args.mode is not None:
        options["mode"] = args.mode
    if args.sensitivity is not None:
        options["sensitivity"] = args.sensitivity

    app = Application(config=config, vision_config=vision_cfg)
    try:
        result = asyncio.run(run_file(app, args.image, options))
    except VisionError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        app.close()

    for line in format_result(result):
        print(line)
    result.release()
    return 0


if __name__ == "__main__":
    sys.exit(main())
