"""Command-line interface for gtfs-od-pipeline."""

import argparse
import logging
import sys

from gtfs_od_pipeline.api import acquire_feed, rebuild, validate_feed
from gtfs_od_pipeline.gtfs.models import ExportOptions, RebuildConfig
from gtfs_od_pipeline.output.report import format_summary
from gtfs_od_pipeline.overrides.document import load_document, save_document
from gtfs_od_pipeline.overrides.rules import (
    CustomRule,
    NormalRule,
    RuleKey,
    clamp_to_trip,
    make_restriction,
)
from gtfs_od_pipeline.transform.segmentation import trip_stop_sequences
from gtfs_od_pipeline.version import VERSION

MODES = ["normal", "pickup", "dropoff", "custom"]


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _id_list(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def cmd_rebuild(args: argparse.Namespace) -> int:
    """Execute rebuild command."""
    setup_logging(args.verbose)

    try:
        export = ExportOptions(
            only_routes=set(args.only_routes) if args.only_routes else None,
            prune_unused=args.prune,
            round_coords=args.round_coords,
            decimate_shapes=args.decimate_shapes,
            max_shape_points=args.max_shape_points,
        )
        config = RebuildConfig.from_env(
            feed_source=args.input,
            feed_slug=args.slug,
            output_dir=args.output_dir,
            output_zip=args.output_zip,
            report_name=args.report,
            overrides_path=args.overrides,
            overrides_url=args.overrides_url,
            timeout=args.timeout,
            strict=args.strict,
            export=export,
        )

        report = rebuild(config)
        print("\nRebuild successful!")
        print(format_summary(report))
        print(f"Output: {report.artifacts['zip']}")
        print(f"Report: {report.artifacts['report']}")
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Rebuild failed")
        return 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Execute validate command."""
    setup_logging(args.verbose)

    try:
        report = validate_feed(args.input, overrides_path=args.overrides or "", slug=args.slug)
        if report.valid:
            print("\nValidation successful!")
            print(f"Stats: {report.stats}")
            if report.warnings:
                print(f"Warnings ({len(report.warnings)}):")
                for warning in report.warnings:
                    print(f"  - {warning}")
            return 0
        else:
            print(f"\nValidation failed with {len(report.errors)} errors:")
            for error in report.errors:
                print(f"  - {error}")
            return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Validation failed")
        return 1


def cmd_rules(args: argparse.Namespace) -> int:
    """Execute rules command (edit a rules document)."""
    setup_logging(args.verbose)

    try:
        trip_stops: dict[str, list[str]] = {}
        if args.input:
            trip_stops = trip_stop_sequences(acquire_feed(args.input).stop_times)

        document = load_document(path=args.file, slug=args.slug, trip_stops=trip_stops)
        restriction = None
        if getattr(args, "mode", None):
            restriction = make_restriction(
                args.mode,
                dropoff_only_from=args.dropoff_only_from,
                pickup_only_to=args.pickup_only_to,
            )

        if args.action == "show":
            counts = document.rules.counts_by_mode()
            print(f"Rules: {len(document.rules)} {counts}")
            print(f"Stop defaults: {len(document.stop_defaults)}")
            for key, rule in sorted(document.rules.items(), key=lambda item: item[0]):
                print(f"  {key}: {rule.mode.value}")
            return 0

        if args.action == "set":
            key = RuleKey(args.trip, args.stop)
            if isinstance(restriction, NormalRule):
                document.rules.clear(key)
            else:
                if isinstance(restriction, CustomRule):
                    restriction = clamp_to_trip(
                        restriction, trip_stops.get(args.trip, ()), args.stop
                    )
                document.rules.set(key, restriction)
            print(f"Set {key}: {restriction.mode.value}")
        elif args.action == "clear":
            key = RuleKey(args.trip, args.stop)
            if not document.rules.clear(key):
                print(f"No rule at {key}")
        elif args.action == "apply-stop":
            if not trip_stops:
                raise ValueError("apply-stop needs --input to find the trips visiting the stop")
            visiting = {
                trip_id: stops for trip_id, stops in trip_stops.items() if args.stop in stops
            }
            if args.trips:
                visiting = {t: s for t, s in visiting.items() if t in set(args.trips)}
            changed = document.rules.apply_to_stop(visiting, args.stop, restriction)
            print(f"Applied {restriction.mode.value} at {args.stop} to {changed} trips")
        elif args.action == "stop-default":
            document.stop_defaults.set(args.stop, restriction)
            print(f"Stop default {args.stop}: {restriction.mode.value}")

        save_document(args.file, document, slug=args.slug)
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        logging.exception("Rules command failed")
        return 1


def _add_rule_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--mode", required=True, choices=MODES, help="Restriction mode")
    parser.add_argument(
        "--dropoff-only-from",
        type=_id_list,
        default=None,
        help="Custom: comma-separated upstream stop ids allowed to alight here",
    )
    parser.add_argument(
        "--pickup-only-to",
        type=_id_list,
        default=None,
        help="Custom: comma-separated downstream stop ids reachable from here",
    )


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="gtfs-od",
        description="Rebuild GTFS feeds with per-stop boarding/alighting rules applied",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # Rebuild command; unset flags fall back to the environment
    rebuild_parser = subparsers.add_parser("rebuild", help="Compile rules into a feed archive")
    rebuild_parser.add_argument(
        "--input", default=None, help="GTFS directory, zip or URL (default: $FEED_URL)"
    )
    rebuild_parser.add_argument("--slug", default=None, help="Feed slug (default: $FEED_SLUG)")
    rebuild_parser.add_argument(
        "--output-dir", default=None, help="Output directory (default: $OUT_DIR or site)"
    )
    rebuild_parser.add_argument(
        "--output-zip", default=None, help="Archive file name (default: <slug>_compiled.zip)"
    )
    rebuild_parser.add_argument(
        "--report", default=None, help="Report file name (default: report.json)"
    )
    rebuild_parser.add_argument(
        "--overrides", default=None, help="Rules document path (default: $OVERRIDES)"
    )
    rebuild_parser.add_argument(
        "--overrides-url", default=None, help="Rules document URL (default: $OVERRIDES_URL)"
    )
    rebuild_parser.add_argument(
        "--only-routes", type=_id_list, default=None, help="Comma-separated route ids to keep"
    )
    rebuild_parser.add_argument(
        "--prune", action="store_true", help="Drop trips, stops, services and shapes nothing uses"
    )
    rebuild_parser.add_argument(
        "--round-coords", action="store_true", help="Round shape coordinates to 5 decimals"
    )
    rebuild_parser.add_argument(
        "--decimate-shapes", action="store_true", help="Bound the number of points per shape"
    )
    rebuild_parser.add_argument(
        "--max-shape-points",
        type=int,
        default=2000,
        help="Points per shape when decimating (default: 2000)",
    )
    rebuild_parser.add_argument(
        "--strict", action="store_true", help="Fail when feed validation reports errors"
    )
    rebuild_parser.add_argument(
        "--timeout", type=float, default=60.0, help="Network timeout in seconds (default: 60)"
    )
    rebuild_parser.set_defaults(func=cmd_rebuild)

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a GTFS feed")
    validate_parser.add_argument("--input", required=True, help="GTFS directory, zip or URL")
    validate_parser.add_argument(
        "--overrides", default=None, help="Also report rule keys not found in the feed"
    )
    validate_parser.add_argument("--slug", default="", help="Feed slug inside the rules document")
    validate_parser.set_defaults(func=cmd_validate)

    # Rules command
    rules_parser = subparsers.add_parser("rules", help="Edit a rules document")
    rules_parser.add_argument("--file", required=True, help="Rules document path")
    rules_parser.add_argument("--slug", default="", help="Feed slug inside a multi-feed document")
    rules_parser.add_argument(
        "--input", default=None, help="GTFS feed used to clamp custom lists and find trips"
    )
    rules_sub = rules_parser.add_subparsers(dest="action", required=True)

    rules_sub.add_parser("show", help="List rules")

    set_parser = rules_sub.add_parser("set", help="Set the rule of one stop visit")
    set_parser.add_argument("--trip", required=True, help="Trip id")
    set_parser.add_argument("--stop", required=True, help="Stop id")
    _add_rule_arguments(set_parser)

    clear_parser = rules_sub.add_parser("clear", help="Remove the rule of one stop visit")
    clear_parser.add_argument("--trip", required=True, help="Trip id")
    clear_parser.add_argument("--stop", required=True, help="Stop id")

    apply_parser = rules_sub.add_parser("apply-stop", help="Apply one rule at a stop to many trips")
    apply_parser.add_argument("--stop", required=True, help="Stop id")
    apply_parser.add_argument(
        "--trips", type=_id_list, default=None, help="Comma-separated trip ids (default: all)"
    )
    _add_rule_arguments(apply_parser)

    default_parser = rules_sub.add_parser("stop-default", help="Set a stop's default rule")
    default_parser.add_argument("--stop", required=True, help="Stop id")
    _add_rule_arguments(default_parser)

    rules_parser.set_defaults(func=cmd_rules)

    # Parse and execute
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
