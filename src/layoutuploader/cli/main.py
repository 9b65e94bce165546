"""CLI entry point for layoutuploader."""

from __future__ import annotations

import argparse
import os
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from pathlib import Path
from typing import Iterable, Optional

from layoutuploader.config import UploaderSettings, load_config
from layoutuploader.core.errors import ConfigError, PlanningError, RenderError
from layoutuploader.core.models import (
    DEFAULT_TILE_SIZE,
    ProcessConfig,
    ProgressUpdate,
    RunResult,
    RunStatus,
    parse_color,
)
from layoutuploader.logging import configure_logging, get_logger
from layoutuploader.pipeline import UploaderService
from layoutuploader.tiling import plan_pyramid, read_dimensions, total_tiles

LOGGER = get_logger(__name__)

SERVER_ENV_VAR = "LAYOUTUPLOADER_SERVER"

EXIT_CODES = {
    RunStatus.COMPLETED: 0,
    RunStatus.ERROR: 1,
    RunStatus.CANCELLED: 130,
}


def _load_env() -> None:
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    try:
        for line in env_path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in stripped:
                continue
            key, value = stripped.split("=", 1)
            os.environ.setdefault(key.strip(), value.strip().strip('"'))
    except OSError as exc:  # pragma: no cover - filesystem errors
        LOGGER.warning("Failed to load .env file", extra={"path": str(env_path), "error": str(exc)})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Upload an image as a deep zoom layout")
    parser.add_argument("--log-json", action="store_true", help="Emit logs in JSON format")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    subcommands = parser.add_subparsers(dest="command", required=True)

    upload = subcommands.add_parser("upload", help="Tile an image and upload it to a layout server")
    upload.add_argument("--image", type=Path, required=True, help="Source raster image")
    upload.add_argument(
        "--server",
        default=None,
        help=f"Server details as 'server_url|layout_key|secret' (default: ${SERVER_ENV_VAR})",
    )
    upload.add_argument(
        "--background",
        default="#000000",
        help="Padding color as #rrggbb (default: #000000)",
    )
    upload.add_argument(
        "--tile-size",
        type=int,
        default=DEFAULT_TILE_SIZE,
        help=f"Tile edge length in pixels, 64-1024 (default: {DEFAULT_TILE_SIZE})",
    )
    upload.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Uploader settings file (YAML or JSON)",
    )
    upload.add_argument(
        "--poll-interval",
        type=float,
        default=0.5,
        help="Seconds between progress reports (default: 0.5)",
    )

    plan = subcommands.add_parser("plan", help="Print the zoom levels an image would produce")
    plan.add_argument("--image", type=Path, required=True, help="Source raster image")
    plan.add_argument(
        "--tile-size",
        type=int,
        default=DEFAULT_TILE_SIZE,
        help=f"Tile edge length in pixels (default: {DEFAULT_TILE_SIZE})",
    )
    plan.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Uploader settings file providing resolution bounds",
    )
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    _load_env()
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    configure_logging(level=args.log_level, json_logs=args.log_json, log_file=args.log_file)

    if args.command == "upload":
        return _handle_upload(args)
    if args.command == "plan":
        return _handle_plan(args)
    parser.error("Unknown command")
    return 1


def _load_settings(path: Optional[Path]) -> UploaderSettings:
    if path is None:
        return UploaderSettings()
    resolved = path.resolve()
    if not resolved.exists():
        raise SystemExit(f"Configuration file not found: {resolved}")
    try:
        return load_config(resolved)
    except (ValueError, TypeError) as exc:
        raise SystemExit(f"Invalid configuration file {resolved}: {exc}") from exc


def _handle_upload(args: argparse.Namespace) -> int:
    server_details = args.server or os.environ.get(SERVER_ENV_VAR)
    if not server_details:
        LOGGER.error("no server details given; pass --server or set %s", SERVER_ENV_VAR)
        return 2
    try:
        config = ProcessConfig.from_server_string(
            args.image,
            server_details,
            background_color=parse_color(args.background),
            tile_size=args.tile_size,
        )
        config.validate()
    except ConfigError as exc:
        LOGGER.error("invalid upload parameters: %s", exc)
        return 2

    settings = _load_settings(args.config)
    service = UploaderService(settings=settings)
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="layout-run") as executor:
        future = executor.submit(service.start, config)
        result = _wait_for_result(service, future, interval=args.poll_interval)

    if result.succeeded:
        LOGGER.info(result.message, extra={"layout_path": result.layout_path, "tiles": result.tiles_uploaded})
    else:
        LOGGER.error(result.message)
    print(result.message)
    return EXIT_CODES[result.status]


def _wait_for_result(service: UploaderService, future: "Future[RunResult]", *, interval: float) -> RunResult:
    last: Optional[ProgressUpdate] = None
    while True:
        try:
            try:
                return future.result(timeout=interval)
            except FutureTimeout:
                pass
            snapshot = service.get_progress()
            if snapshot is not None and snapshot != last:
                _log_progress(snapshot)
                last = snapshot
        except KeyboardInterrupt:
            LOGGER.warning("interrupt received; cancelling run")
            service.cancel()


def _log_progress(snapshot: ProgressUpdate) -> None:
    LOGGER.info(
        "%s: %.1f%% (%d/%d)",
        snapshot.message or snapshot.status.value,
        snapshot.percentage,
        snapshot.current,
        snapshot.total,
        extra={"status": snapshot.status.value, "zoom_level": snapshot.zoom_level},
    )


def _handle_plan(args: argparse.Namespace) -> int:
    settings = _load_settings(args.config)
    try:
        width, height = read_dimensions(args.image)
        levels = plan_pyramid(
            width,
            height,
            args.tile_size,
            min_resolution=settings.min_resolution,
            max_resolution=settings.max_resolution,
        )
    except (RenderError, PlanningError) as exc:
        LOGGER.error("cannot plan pyramid: %s", exc)
        return 1

    print(f"source {width}x{height}, tile size {args.tile_size}")
    for level in levels:
        print(
            f"zoom {level.zoom}\timage {level.width}x{level.height}\t"
            f"canvas {level.canvas_width}x{level.canvas_height}\t"
            f"grid {level.columns}x{level.rows}\ttiles {level.tile_count}"
        )
    print(f"total tiles {total_tiles(levels)}")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
