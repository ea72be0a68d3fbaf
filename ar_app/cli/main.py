"""
Command-line interface for the chessboard pose overlay program.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from typing import List, Optional

from ar_app.calib.chessboard import ChessboardDetector
from ar_app.config.settings import AppConfig, load_config, validate_config
from ar_app.core.data_structures import TargetGeometry
from ar_app.exceptions import ArAppError, ConfigError, MalformedCalibrationFileError
from ar_app.io.calib_io import load_calibration
from ar_app.io.display import OpenCVDisplay
from ar_app.io.video_io import CameraFrameSource, FrameSource, open_media_source
from ar_app.log_config.logger import configure_logging, get_logger
from ar_app.overlay.render import OverlayStyle
from ar_app.overlay.shapes import SHAPES, get_shape
from ar_app.pipeline.frame_loop import FrameLoop
from ar_app.pipeline.processors import PoseOverlayProcessor

logger = get_logger(__name__)

LOG_LEVELS = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ar-overlay",
        description="Draw virtual shapes on a chessboard seen by a calibrated camera",
    )
    parser.add_argument(
        "calib_file",
        type=str,
        help="Calibration parameter file written by ar-calibrate",
    )
    parser.add_argument(
        "media",
        type=str,
        nargs="?",
        default=None,
        help="Optional image or video file (default: live camera)",
    )
    parser.add_argument(
        "--shape",
        type=str,
        default=None,
        choices=sorted(SHAPES),
        help="Shape drawn on the board (default: from config, fish_school)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Optional YAML configuration file",
    )
    parser.add_argument(
        "--device",
        type=int,
        default=None,
        help="Camera device index used when no media file is given",
    )
    parser.add_argument(
        "--rows",
        type=int,
        default=None,
        help="Inner corners per chessboard column",
    )
    parser.add_argument(
        "--cols",
        type=int,
        default=None,
        help="Inner corners per chessboard row",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default=None,
        choices=LOG_LEVELS,
        help="Console log level (default: from config, INFO)",
    )
    return parser


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Apply the command-line flags shared by both programs on top of the config."""
    target = config.target
    if args.rows is not None:
        target = replace(target, rows=args.rows)
    if args.cols is not None:
        target = replace(target, cols=args.cols)
    session = config.session
    if args.device is not None:
        session = replace(session, device=args.device)
    logging_settings = config.logging
    if args.log_level is not None:
        logging_settings = replace(logging_settings, level=args.log_level)
    config = replace(config, target=target, session=session, logging=logging_settings)
    validate_config(config)
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point for the overlay program.

    Usage:
        ar-overlay calibration.txt [image_or_video] [--shape axes|box|fish|fish_school]

    Returns:
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging("INFO")
    try:
        config = apply_overrides(load_config(args.config), args)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    configure_logging(config.logging.level, config.logging.file)

    try:
        geometry = TargetGeometry(config.target.rows, config.target.cols)
        shape = get_shape(args.shape or config.overlay.shape)
    except ValueError as e:
        logger.error(str(e))
        return 1

    # A bad parameter file stops the program before any frame is processed.
    try:
        intrinsics = load_calibration(args.calib_file)
    except MalformedCalibrationFileError as e:
        logger.error(f"Cannot use calibration file: {e}")
        return 1
    logger.info(f"Loaded calibration from {args.calib_file}")

    try:
        source: FrameSource
        if args.media is None:
            source = CameraFrameSource(config.session.device)
        else:
            source = open_media_source(args.media)
    except ArAppError as e:
        logger.error(str(e))
        return 1

    processor = PoseOverlayProcessor(
        ChessboardDetector(geometry, config.detector),
        intrinsics,
        shape,
        OverlayStyle.from_settings(config.overlay),
        config.pose,
    )

    with source:
        display = OpenCVDisplay(config.loop.window_name, config.loop.wait_ms)
        try:
            stats = FrameLoop(source, display, processor, config.loop).run()
        finally:
            display.close()

    logger.info(f"Processed {stats.frames} frames")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
