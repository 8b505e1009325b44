#!/usr/bin/env python3
"""
CLI entry point for the wm wardrive mapper.

Defines the following commands:
  wm map DIR [--kml] [--csv] [--geojson FILE] [--filter] [--potfile FILE] ...
  wm version
"""

import sys
from argparse import ArgumentParser, Namespace
from importlib.metadata import PackageNotFoundError, version as _get_version
from pathlib import Path
from typing import Optional

from wm.analysis.config import EstimatorConfig, FilterConfig, PipelineConfig, SyncConfig
from wm.analysis.interest import select_interesting
from wm.analysis.pipeline import MappingPipeline
from wm.errors import NoUsableInputError
from wm.export.common import filtered_path
from wm.export.csv import export_csv
from wm.export.geojson import export_geojson
from wm.export.kml import export_kml
from wm.parsers.hashcat import PasswordSource, bind_passwords, load_security_hints
from wm.utils.discovery import find_hash_files, find_sessions
from wm.utils.log import configure_logging, get_logger

logger = get_logger(__name__)

DIST_NAME = "wm-wardrive-mapper"
DEFAULT_CSV = "wifi_aps.csv"
DEFAULT_KML = "wifi_aps.kml"

PRESETS = {
    "driving": PipelineConfig.driving,
    "walking": PipelineConfig.walking,
}


def build_config(args: Namespace) -> PipelineConfig:
    """
    Start from the chosen preset and apply explicit overrides.
    """
    cfg = PRESETS[args.preset]()
    sync = SyncConfig(
        tolerance_s=args.tolerance if args.tolerance is not None else cfg.sync.tolerance_s,
        fallback_window_s=(
            args.fallback_window if args.fallback_window is not None else cfg.sync.fallback_window_s
        ),
    )
    estimator = EstimatorConfig(
        weight_base=cfg.estimator.weight_base,
        dedupe_timestamps=args.dedupe or cfg.estimator.dedupe_timestamps,
        min_separation_m=(
            args.min_separation if args.min_separation is not None else cfg.estimator.min_separation_m
        ),
    )
    return PipelineConfig(sync=sync, estimator=estimator, workers=args.workers)


def build_filter(args: Namespace) -> FilterConfig:
    return FilterConfig(
        enabled=True,
        min_observations=args.min_obs,
        require_password=not args.no_password_required,
    )


def _password_source(directory: str, potfile: Optional[str], no_hashcat: bool):
    hash_files = [] if no_hashcat else find_hash_files(directory)
    hints = load_security_hints(hash_files)
    if potfile is not None:
        return PasswordSource.from_potfile(potfile), hints
    if no_hashcat or not hash_files:
        return None, hints
    return PasswordSource.from_hashcat(hash_files), hints


def map_dir(args: Namespace) -> int:
    """
    Build the access point map for every session in a directory.

    Parameters
    ----------
    args
        Parsed ``wm map`` arguments.

    Returns
    -------
    int
        Process exit code.
    """
    logger.info("Map: directory=%s, preset=%s, workers=%d", args.directory, args.preset, args.workers)
    cfg = build_config(args)
    sessions = find_sessions(args.directory)
    try:
        ws = MappingPipeline(cfg).run(sessions)
    except NoUsableInputError as e:
        logger.error("Nothing to map: %s", e)
        return 1

    source, hints = _password_source(args.directory, args.potfile, args.no_hashcat)
    if source is not None or hints:
        bind_passwords(ws, source or PasswordSource(), hints)

    records = [ws[bssid] for bssid in sorted(ws)]
    outputs = []
    if args.csv or args.csv_output:
        outputs.append((export_csv, Path(args.csv_output or DEFAULT_CSV)))
    if args.kml or args.kml_output:
        outputs.append((export_kml, Path(args.kml_output or DEFAULT_KML)))
    if args.geojson:
        outputs.append((export_geojson, Path(args.geojson)))

    if not outputs:
        logger.warning("No export requested (use --csv, --kml or --geojson)")
    for export, path in outputs:
        export(records, path)

    if args.filter:
        interesting = select_interesting(ws, build_filter(args))
        logger.info("%d of %d access points pass the interest filter", len(interesting), len(ws))
        for export, path in outputs:
            export(interesting, filtered_path(path))
    return 0


def version() -> None:
    """
    Print the installed wm package version.
    """
    try:
        ver = _get_version(DIST_NAME)
    except PackageNotFoundError:
        ver = "unknown"
    logger.info("wm version %s", ver)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="wm")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # wm map
    p = subparsers.add_parser("map", help="Map access points from paired .pcapng/.nmea sessions.")
    p.add_argument("directory", type=str, help="Working directory with capture and GPS files.")
    p.add_argument("--kml", action="store_true", help=f"Export a KML file ({DEFAULT_KML}).")
    p.add_argument("--kml-output", type=str, metavar="FILE", help="Path to the KML output.")
    p.add_argument("--csv", action="store_true", help=f"Export a CSV file ({DEFAULT_CSV}).")
    p.add_argument("--csv-output", type=str, metavar="FILE", help="Path to the CSV output.")
    p.add_argument("--geojson", type=str, metavar="FILE", help="Path to a GeoJSON output.")
    p.add_argument(
        "--filter", action="store_true",
        help="Also write *_filtered exports with only the interesting access points.",
    )
    p.add_argument("--min-obs", type=int, help="Minimum observations for the interest filter.")
    p.add_argument(
        "--no-password-required", action="store_true",
        help="Interest filter does not require a cracked password.",
    )
    p.add_argument("--no-hashcat", action="store_true", help="Disable hashcat password binding.")
    p.add_argument("--potfile", type=str, metavar="FILE", help="Read passwords from a hashcat potfile.")
    p.add_argument("--preset", choices=sorted(PRESETS), default="driving", help="Threshold preset.")
    p.add_argument("--tolerance", type=float, metavar="S", help="GPS sync tolerance in seconds.")
    p.add_argument(
        "--fallback-window", type=float, metavar="S",
        help="Window in seconds for last-known-position fallback.",
    )
    p.add_argument(
        "--dedupe", action="store_true",
        help="Collapse observations of an access point sharing a timestamp.",
    )
    p.add_argument(
        "--min-separation", type=float, metavar="M",
        help="Drop samples closer than M metres to a stronger one.",
    )
    p.add_argument("--workers", type=int, default=1, help="Parallel session workers.")
    p.add_argument(
        "--log-level", type=str.upper, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level.",
    )
    p.add_argument("--log-file", type=str, metavar="FILE", help="Also write JSON logs to FILE.")

    # wm version
    subparsers.add_parser("version", help="Show wm version and exit.")

    return parser


def parse_args(argv: Optional[list[str]] = None) -> Namespace:
    """
    Parse command-line arguments and return the populated namespace.
    """
    return build_parser().parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    """
    Entry point: dispatch to the selected subcommand.
    """
    args = parse_args(argv)
    match args.command:
        case "map":
            configure_logging(args.log_level, args.log_file)
            sys.exit(map_dir(args))
        case "version":
            version()
        case _:
            sys.exit(1)


if __name__ == "__main__":
    main()
