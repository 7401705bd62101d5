# main.py

"""Entry point for the catalog_assistant developer CLI."""

import argparse
import logging
import sys

from src.config.logging_config import setup_logging

logger = logging.getLogger("catalog_assistant.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="catalog_assistant",
        description="Retail chatbot catalog retrieval core.",
    )
    parser.add_argument(
        "message",
        nargs="?",
        default=None,
        help="User message. Omit to start an interactive chat.",
    )
    parser.add_argument(
        "-c",
        "--catalog",
        default=None,
        help="Textual catalog snapshot file (headers + name,price lines).",
    )
    parser.add_argument(
        "-p",
        "--products",
        default=None,
        help="JSON file with typed products.",
    )
    parser.add_argument(
        "-u",
        "--user-id",
        type=int,
        default=0,
        dest="user_id",
        help="Conversation key (default: 0).",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="table",
        dest="output_format",
        help="Output format for --offline and --rank (default: table).",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        default=False,
        help="Show constraints and the forwarded catalog; no generator.",
    )
    parser.add_argument(
        "--rank",
        action="store_true",
        default=False,
        help="Rank typed products against the message.",
    )
    return parser


def main() -> None:
    """Route to offline inspection, ranking, or chat."""
    log_file = setup_logging()
    logger.info("catalog_assistant starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    from src.cli.runner import load_catalog, run_chat, run_offline, run_rank
    from src.storage.catalog_store import CatalogStore

    if (args.offline or args.rank) and args.message is None:
        parser.error("--offline and --rank need a message")

    store = CatalogStore()
    load_catalog(store, args.catalog, args.products)

    if args.rank:
        exit_code = run_rank(args.message, store, args.output_format)
    elif args.offline:
        exit_code = run_offline(args.message, store, args.output_format)
    else:
        exit_code = run_chat(args.message, store, args.user_id)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
