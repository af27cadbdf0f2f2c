"""Command-line interface for the itinerary planner."""

import argparse
import json
import logging
import sys
from pathlib import Path

import database as db
from planner import config

from .editor import ItineraryEditor
from .feed import FeedClient, FeedFetchError, FeedLoader
from .models import Catalog, Itinerary, resolve_place
from .parser import FeedParser
from .store import FeedCache, TripStore, load_builtin
from .sync import ListMapSynchronizer
from .web_view import PlannerWebView


def quick_summary(itinerary: Itinerary, catalog: Catalog) -> str:
    """Plain-text day by day listing."""
    lines = [itinerary.title or "Trip", ""]
    for day in itinerary.days:
        lines.append(f"{day.label} ({len(day.visits)} locations)")
        for number, visit in enumerate(day.visits, start=1):
            record = resolve_place(visit, catalog)
            time_str = f"{visit.time}  " if visit.time else ""
            where = f", {record.city}" if record.city else ""
            located = "" if record.has_coordinates else "  [no coordinates]"
            lines.append(f"  {number}. {time_str}{record.title}{where}{located}")
        lines.append("")
    return "\n".join(lines)


def main():
    parser = argparse.ArgumentParser(
        description="Load, summarize, and render a day-by-day trip itinerary",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Summarize the built-in trip (or the saved edited copy)
  python -m planner.itinerary.cli

  # Fetch a published spreadsheet and write the planner page
  python -m planner.itinerary.cli --feed "https://docs.google.com/spreadsheets/d/.../gviz/tq" --web trip.html

  # Parse an Excel export and dump it as JSON
  python -m planner.itinerary.cli --excel itinerary.xlsx --json trip.json

  # Throw away local edits
  python -m planner.itinerary.cli --reset
        """,
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--feed",
        type=str,
        metavar="URL",
        help="Published spreadsheet (gviz) URL (or set FEED_URL env var)",
    )
    source.add_argument(
        "--excel",
        type=str,
        metavar="PATH",
        help="Parse an .xlsx workbook laid out like the feed",
    )
    source.add_argument(
        "--builtin",
        type=str,
        metavar="DIR",
        help="Directory with trip.json and catalog.json (default: PLANNER_DATA_DIR)",
    )

    parser.add_argument(
        "--json",
        type=str,
        metavar="OUTPUT_PATH",
        help="Export the itinerary as JSON",
    )

    parser.add_argument(
        "--web",
        type=str,
        metavar="OUTPUT_PATH",
        help="Generate the planner page (lists + maps per day)",
    )

    parser.add_argument(
        "--reset",
        action="store_true",
        help="Discard the saved edited copy and go back to the built-in trip",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    store = db.KeyValueStore(config.get_database_path())
    feed_url = args.feed or (None if args.excel or args.builtin else config.get_feed_url())
    data_dir = Path(args.builtin) if args.builtin else config.get_data_dir()
    catalog_path = data_dir / "catalog.json"
    fetched_at = None
    error = None

    try:
        if feed_url:
            print(f"Fetching {feed_url}...")
            loader = FeedLoader(
                FeedClient(feed_url, timeout=config.get_feed_timeout()),
                FeedParser(),
                FeedCache(store, config.get_feed_cache_key()),
            )
            try:
                result = loader.load()
            except FeedFetchError as e:
                print(f"Error: {e}", file=sys.stderr)
                print("Run the same command again to retry.", file=sys.stderr)
                sys.exit(2)
            if result.from_cache:
                print(f"Warning: {result.error}; using cached copy", file=sys.stderr)
            itinerary, fetched_at, error = result.itinerary, result.fetched_at, result.error
            catalog = Catalog()
            editor = ItineraryEditor(itinerary, catalog=catalog)

        elif args.excel:
            input_path = Path(args.excel)
            if not input_path.exists():
                print(f"Error: File not found: {input_path}", file=sys.stderr)
                sys.exit(1)
            print(f"Parsing {input_path.name}...")
            itinerary = FeedParser().parse_file(input_path)
            catalog = Catalog()
            editor = ItineraryEditor(itinerary, catalog=catalog)

        else:
            reference, catalog = load_builtin(
                data_dir / "trip.json",
                catalog_path if catalog_path.exists() else None,
            )
            trip_store = TripStore(store, config.get_storage_key(), reference.version)
            editor = ItineraryEditor(trip_store.load_or_default(reference), trip_store, catalog)
            if args.reset:
                editor.reset_to_default(reference)
                print("Trip reset to default.")

        itinerary = editor.itinerary
        print(f"Found {itinerary.visit_count} locations over {len(itinerary.days)} days")

        # Export JSON
        if args.json:
            output_path = Path(args.json)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, "w") as f:
                json.dump(itinerary.to_dict(), f, indent=2, default=str)
            print(f"JSON data saved to: {args.json}")

        # Generate the planner page
        if args.web:
            print("\nGenerating web view...")
            web_view = PlannerWebView(ListMapSynchronizer(editor, catalog), editable=False)
            web_view.generate(args.web, fetched_at=fetched_at, error=error)
            print(f"Web view saved to: {args.web}")

        # Default output if no specific output requested
        if not any([args.json, args.web, args.reset]):
            print("\n" + quick_summary(itinerary, catalog))

    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
