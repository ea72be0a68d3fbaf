"""
Command-line interface for interactive chessboard calibration.
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from ar_app.calib.chessboard import ChessboardDetector
from ar_app.cli.main import LOG_LEVELS, apply_overrides
from ar_app.config.settings import load_config
from ar_app.core.data_structures import TargetGeometry
from ar_app.exceptions import ArAppError, ConfigError
from ar_app.io.display import OpenCVDisplay
from ar_app.io.video_io import CameraFrameSource, FrameSource, VideoFileFrameSource
from ar_app.log_config.logger import configure_logging, get_logger
from ar_app.pipeline.frame_loop import FrameLoop
from ar_app.pipeline.processors import CalibrationProcessor
from ar_app.session.calibration_session import CalibrationSession
from ar_app.viz.plotly_viz import plot_calibration_poses

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ar-calibrate",
        description=(
            "Calibrate a camera from chessboard views. Keys: s = save sample, "
            "c = calibrate, f = write calibration file, q = quit"
        ),
    )
    parser.add_argument(
        "--video",
        type=str,
        default=None,
        help="Calibrate from a video file instead of the live camera",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Calibration file written on 'f' (default: calibration.txt)",
    )
    parser.add_argument(
        "--frames-dir",
        type=str,
        default=None,
        help="Directory where selected frames are saved as calibration_frame_N.jpg",
    )
    parser.add_argument(
        "--visualize",
        type=str,
        default=None,
        metavar="HTML",
        help="Write an HTML view of the estimated target poses after quitting",
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
        help="Camera device index (default: 0)",
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


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point for calibration.

    Usage:
        ar-calibrate [--video calib.mp4] [--output calibration.txt] \\
                     [--frames-dir frames/] [--visualize poses.html]

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
    session_settings = config.session
    if args.output is not None:
        session_settings = replace(session_settings, output_path=args.output)
    if args.frames_dir is not None:
        session_settings = replace(session_settings, frames_dir=args.frames_dir)
    config = replace(config, session=session_settings)
    configure_logging(config.logging.level, config.logging.file)

    try:
        geometry = TargetGeometry(config.target.rows, config.target.cols)
    except ValueError as e:
        logger.error(str(e))
        return 1

    try:
        source: FrameSource
        if args.video is None:
            source = CameraFrameSource(config.session.device)
        else:
            source = VideoFileFrameSource(args.video)
    except ArAppError as e:
        logger.error(str(e))
        return 1

    session = CalibrationSession(
        geometry,
        config.calibration,
        frames_dir=config.session.frames_dir,
    )
    processor = CalibrationProcessor(
        ChessboardDetector(geometry, config.detector),
        session,
        config.session.output_path,
        image_size=source.frame_size,
    )

    with source:
        display = OpenCVDisplay(config.loop.window_name, config.loop.wait_ms)
        try:
            FrameLoop(source, display, processor, config.loop).run()
        finally:
            display.close()

    if args.visualize:
        if session.result is None:
            logger.warning("No calibration result to visualize")
        else:
            viz_path = Path(args.visualize)
            viz_path.parent.mkdir(parents=True, exist_ok=True)
            fig = plot_calibration_poses(session.result, session.model_points)
            fig.write_html(str(viz_path))
            logger.info(f"Visualization saved to {viz_path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
