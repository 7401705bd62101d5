# src/cli/runner.py

"""Developer CLI runners: offline pipeline inspection, ranking, chat."""

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from rich.console import Console
from rich.table import Table

from src.filters.catalog_filter import CatalogFilter, OverBudgetNotice
from src.models.conversation import ExtractedConstraints
from src.models.product import Product
from src.services.chat_orchestrator import ChatOrchestrator, ReplyStatus
from src.services.gemini_generator import GeminiGenerator
from src.storage.catalog_store import CatalogStore
from src.storage.chat_history import ChatHistoryStore

logger = logging.getLogger("catalog_assistant.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def load_catalog(
    store: CatalogStore,
    catalog_path: str | None,
    products_path: str | None,
) -> None:
    """Fill *store* from a snapshot text file and/or a products JSON file.

    Raises ``SystemExit`` when a file cannot be read.
    """
    if catalog_path:
        path = Path(catalog_path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            _err.print(f"[red]Cannot read catalog: {exc}[/red]")
            raise SystemExit(1) from exc
        store.set_text_snapshot(text, label=path.name)
        _err.print(f"[dim]Catalog snapshot: {path.name}[/dim]")

    if products_path:
        try:
            with open(products_path, encoding="utf-8") as f:
                raw: list[dict[str, object]] = json.load(f)
            products = [
                Product(
                    id=str(d["id"]),
                    name=str(d["name"]),
                    price=float(str(d.get("price", 0))),
                    category=str(d.get("category", "")),
                    description=str(d.get("description", "")),
                    stock=int(str(d.get("stock", 0))),
                    specs={
                        str(k): str(v)
                        for k, v in dict(d.get("specs") or {}).items()
                    },
                )
                for d in raw
            ]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            _err.print(f"[red]Cannot load products: {exc}[/red]")
            raise SystemExit(1) from exc
        count = store.replace_catalog(products)
        _err.print(f"[dim]Loaded {count} typed products[/dim]")


def _print_constraints(constraints: ExtractedConstraints) -> None:
    table = Table(
        title="Extracted Constraints",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in asdict(constraints).items():
        if isinstance(value, list):
            value = ", ".join(value) or "—"
        table.add_row(key, str(value) if value != "" else "—")
    Console().print(table)


def run_offline(
    message: str,
    store: CatalogStore,
    output_format: str,
) -> int:
    """Show what the pipeline would forward for *message*; no generator."""
    orchestrator = ChatOrchestrator(
        store, ChatHistoryStore(), GeminiGenerator(api_key="offline")
    )
    snapshot = store.get_text_snapshot()
    available = (
        CatalogFilter.filter_in_stock(snapshot.text) if snapshot else ""
    )
    constraints = orchestrator.extractor.extract(message, (), available)

    notice: OverBudgetNotice | None = None
    forwarded = ""
    if available.strip():
        view = orchestrator.build_catalog_view(
            message, constraints, available
        )
        if isinstance(view, OverBudgetNotice):
            notice = view
        else:
            forwarded = view.text

    if output_format == "json":
        json.dump(
            {
                "constraints": asdict(constraints),
                "over_budget": notice.message if notice else None,
                "catalog": forwarded,
            },
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")
        return 0

    _print_constraints(constraints)
    if notice is not None:
        Console().print(notice.message, style="yellow", markup=False)
    elif forwarded:
        Console().print(forwarded, markup=False)
    else:
        _err.print("[yellow]No catalog snapshot loaded.[/yellow]")
    return 0


def run_rank(query: str, store: CatalogStore, output_format: str) -> int:
    """Rank typed products against *query* and print the scores."""
    candidates = store.search_candidates(query)
    if not candidates:
        _err.print("[yellow]No products matched.[/yellow]")
        return 1

    if output_format == "json":
        json.dump(
            [
                {
                    "id": c.product.id,
                    "name": c.product.name,
                    "price": c.product.price,
                    "score": c.score,
                }
                for c in candidates
            ],
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")
        return 0

    table = Table(
        title=f"Ranking for '{query}'",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Name", max_width=60)
    table.add_column("Category", style="magenta")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Score", justify="right")
    for idx, c in enumerate(candidates, 1):
        table.add_row(
            str(idx),
            c.product.name[:60],
            c.product.category or "—",
            f"{c.product.price:,.2f}$",
            str(c.score),
        )
    Console().print(table)
    return 0


def _print_reply(
    orchestrator: ChatOrchestrator,
    user_id: int,
    text: str,
) -> int:
    reply = orchestrator.process_message(user_id, text)
    style = {
        ReplyStatus.ANSWERED: "green",
        ReplyStatus.TEMPLATE: "cyan",
        ReplyStatus.OVER_BUDGET: "yellow",
    }.get(reply.status, "red")
    _err.print(f"[{style}]{reply.status.value}[/{style}]")
    if reply.corrections:
        _err.print(f"[dim]{reply.corrections} price(s) corrected[/dim]")
    Console().print(reply.text, markup=False)
    return 1 if reply.status is ReplyStatus.GENERATION_FAILED else 0


def run_chat(message: str | None, store: CatalogStore, user_id: int) -> int:
    """Answer one message, or chat interactively when *message* is None."""
    orchestrator = ChatOrchestrator(
        store, ChatHistoryStore(), GeminiGenerator()
    )
    if message is not None:
        return _print_reply(orchestrator, user_id, message)

    _err.print("[bold]Interactive chat[/bold] [dim](empty line quits)[/dim]")
    while True:
        try:
            text = Console().input("[bold]> [/bold]")
        except (EOFError, KeyboardInterrupt):
            break
        if not text.strip():
            break
        _print_reply(orchestrator, user_id, text)
    return 0
