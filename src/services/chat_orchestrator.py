# src/services/chat_orchestrator.py

"""Per-message pipeline from user text to a validated reply."""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from src.config.settings import Settings
from src.filters.catalog_filter import CatalogFilter, OverBudgetNotice
from src.filters.constraint_extractor import ConstraintExtractor
from src.filters.response_validator import ResponseValidator
from src.models.conversation import ExtractedConstraints, HistoryTurn
from src.models.product import Product
from src.services.gemini_generator import (
    GenerationBlocked,
    GenerationError,
    Generator,
)
from src.storage.catalog_store import CatalogStore
from src.storage.chat_history import ChatHistoryStore

logger = logging.getLogger("catalog_assistant.orchestrator")

_BUDGET_WORDS = ("budjet", "budget", "бюджет")
_CHECKOUT_MARKERS = ("jami:", "итого:")

_CATALOG_RULES = """\
QOIDALAR:
- Katalogdan ANIQ narx va nomlarni ol
- Har variant: [NOM] - [NARX]$
- 3-5 variant ko'rsat (imkon bo'lsa 5 ta) va raqamla (1-5)
- Budjet berilgan bo'lsa: budjetdan ortiq ko'rsatma, eng yaqin \
variantlarni yuqoriga qo'y
- Budjet berilmagan bo'lsa: turli narxdagi 5 ta variant ber va budjetni \
so'rab qo'y
- Brend ko'rsatilgan bo'lsa, faqat shu brenddan tanla
- So'ralgan mahsulot ro'yxatda bo'lmasa, "mavjud emas" deb ayt"""


class ReplyStatus(Enum):
    ANSWERED = "answered"
    TEMPLATE = "template"
    OVER_BUDGET = "over_budget"
    BLOCKED = "blocked"
    GENERATION_FAILED = "generation_failed"


@dataclass
class ChatReply:
    """Final reply for one message plus what shaped it."""

    text: str
    status: ReplyStatus
    constraints: ExtractedConstraints = field(
        default_factory=ExtractedConstraints
    )
    corrections: int = 0
    suspect_prices: list[str] = field(
        default_factory=lambda: list[str]()
    )


@dataclass
class CatalogView:
    """Catalog text forwarded to the generator for one message."""

    text: str
    label: str = ""


def _constraint_summary(constraints: ExtractedConstraints) -> str:
    lines: list[str] = []
    if constraints.has_category:
        lines.append(f"Mahsulot turi: {constraints.category}")
    if constraints.has_brands:
        lines.append(f"Brend: {', '.join(constraints.brands)}")
    if constraints.has_purpose:
        lines.append(f"Maqsad: {constraints.purpose}")
    elif constraints.is_inquiry:
        lines.append("Maqsad: (aniqlanmagan)")
    if constraints.has_budget:
        lines.append(f"Budjet: {constraints.budget}$")
    elif constraints.is_inquiry:
        lines.append("Budjet: (aniqlanmagan)")
    return "\n".join(lines)


def build_catalog_prompt(
    text: str,
    constraints: ExtractedConstraints,
    view: CatalogView,
) -> str:
    """Prompt carrying the user text, constraints and catalog fragment."""
    return (
        f"{text}\n\n{_constraint_summary(constraints)}\n\n"
        f"DO'KONDAGI MAVJUD MAHSULOTLAR (fayl: {view.label or '-'}):\n\n"
        f"{view.text}\n\n{_CATALOG_RULES}\n\nMijozga javob ber:"
    )


def build_products_prompt(text: str, products: list[Product]) -> str:
    """Prompt built from typed products when no snapshot exists."""
    listing = "\n".join(
        f"- {p.name} ({p.category or '-'}) - {p.price:.2f}$"
        f", omborda: {p.stock}"
        for p in products
    )
    return (
        f"Mijoz: {text}\n\nDO'KONDAGI MAVJUD MAHSULOTLAR:\n{listing}\n\n"
        f"{_CATALOG_RULES}\n\nMijozga javob ber:"
    )


def build_no_catalog_prompt(text: str) -> str:
    return (
        f"{text}\n\n(Do'kon katalogi hozircha yuklanmagan: aniq mahsulot "
        "yoki narx va'da qilma.)"
    )


class ChatOrchestrator:
    """Wires extraction, filtering, generation and validation.

    Stateless between calls apart from the injected stores, so one
    instance serves every user concurrently.
    """

    def __init__(
        self,
        store: CatalogStore,
        history: ChatHistoryStore,
        generator: Generator,
        extractor: ConstraintExtractor | None = None,
    ) -> None:
        self.settings = Settings()
        self.store = store
        self.history = history
        self.generator = generator
        self.extractor = extractor or ConstraintExtractor()

    # ── Catalog view ─────────────────────────────────────

    def _scoped(
        self, available: str, constraints: ExtractedConstraints,
    ) -> str:
        """Budget (and category) filtered lines, widened when empty."""
        if constraints.has_category:
            scoped = CatalogFilter.filter_by_budget_and_category(
                available, constraints.budget, constraints.category
            )
            if scoped.strip():
                return scoped
        return CatalogFilter.filter_by_budget(available, constraints.budget)

    def build_catalog_view(
        self,
        text: str,
        constraints: ExtractedConstraints,
        available: str,
    ) -> CatalogView | OverBudgetNotice:
        """Filtered catalog for *text*, or the over-budget notice."""
        forwarded = available
        if constraints.has_category:
            forwarded = CatalogFilter.filter_by_category(
                available, constraints.category
            )
        if constraints.has_budget:
            forwarded = self._scoped(available, constraints)
            notice = CatalogFilter.find_over_budget_request(
                available, text, constraints.budget, constraints.category
            )
            if notice is not None:
                return notice

        if constraints.has_brands:
            branded = CatalogFilter.filter_by_brand(
                forwarded, constraints.brands
            )
            if branded.strip():
                forwarded = branded

        if constraints.has_budget and not forwarded.strip():
            cheapest, min_price = CatalogFilter.cheapest(
                available, self.settings.LISTING_SIZE
            )
            if cheapest:
                logger.info(
                    "Budget %d below cheapest item %.2f",
                    constraints.budget,
                    min_price,
                )
                forwarded = "\n".join([
                    "Budjetingiz eng arzon mahsulotdan past "
                    f"(min: {min_price:.2f}$). Eng yaqin variantlar:",
                    *CatalogFilter.format_lines(cheapest),
                ])
        return CatalogView(text=forwarded)

    # ── Generation ───────────────────────────────────────

    def _generate(
        self, prompt: str, history: list[HistoryTurn],
    ) -> tuple[str, ReplyStatus]:
        """Call the generator with bounded retries and linear backoff."""
        attempts = self.settings.MAX_RETRIES
        for attempt in range(attempts):
            try:
                return (
                    self.generator.generate(prompt, history),
                    ReplyStatus.ANSWERED,
                )
            except GenerationBlocked as exc:
                logger.warning("Generation blocked: %s", exc)
                return self.settings.SAFETY_BLOCK_REPLY, ReplyStatus.BLOCKED
            except GenerationError as exc:
                logger.warning(
                    "Generation attempt %d/%d failed: %s",
                    attempt + 1,
                    attempts,
                    exc,
                )
                if attempt < attempts - 1:
                    time.sleep(self.settings.RETRY_DELAY * (attempt + 1))
        logger.error("Generator exhausted after %d attempts", attempts)
        return (
            self.settings.GENERATION_FAILED_REPLY,
            ReplyStatus.GENERATION_FAILED,
        )

    # ── Post-processing ──────────────────────────────────

    def _budget_template(self, budget_catalog: str) -> str:
        top = CatalogFilter.top_by_price(
            budget_catalog, self.settings.LISTING_SIZE
        )
        if not top:
            return (
                "Kechirasiz, sizning budjetingizga mos mahsulot topilmadi. "
                "Boshqa budjet bilan harakat qilib ko'ring."
            )
        return (
            "Kechirasiz, tavsiyada xatolik bo'ldi. Sizning budjetingizga "
            "mos keladigan eng yaxshi variantlar:\n\n"
            + "\n".join(CatalogFilter.format_lines(top))
        )

    def _enrich_sparse_reply(
        self,
        reply: str,
        constraints: ExtractedConstraints,
        available: str,
    ) -> str | None:
        """Replace a reply offering fewer than three priced variants."""
        lower = reply.lower()
        if any(marker in lower for marker in _CHECKOUT_MARKERS):
            return None
        variants = ResponseValidator.count_priced_variants(reply)
        minimum = self.settings.MIN_VARIANTS
        size = self.settings.LISTING_SIZE

        if constraints.has_budget:
            if not constraints.has_purpose or "$" not in reply:
                return None
            if not 0 < variants < minimum:
                return None
            pool = self._scoped(available, constraints)
            if constraints.has_brands:
                pool = CatalogFilter.filter_by_brand(
                    pool, constraints.brands
                ) or pool
            top = CatalogFilter.top_by_price(pool, size)
            if len(top) < minimum:
                return None
            label = constraints.category
            if constraints.has_brands:
                brands = " ".join(constraints.brands).upper()
                label = f"{brands} {label}".strip()
            return (
                f"{constraints.budget}$ budjetga {label} uchun eng yaqin "
                "variantlar:\n\n"
                + "\n".join(CatalogFilter.format_lines(top, numbered=True))
                + "\n\nQaysi birini tanlaysiz? Raqamini yozing "
                f"(1-{len(top)})."
            )

        asked_budget = any(word in lower for word in _BUDGET_WORDS)
        if not asked_budget or variants >= minimum:
            return None
        pool = CatalogFilter.filter_by_category(
            available, constraints.category
        )
        intro = f"{constraints.category} bo'yicha variantlar:"
        if constraints.has_brands:
            brand_label = " ".join(constraints.brands).upper()
            branded = CatalogFilter.filter_by_brand(pool, constraints.brands)
            if branded.strip():
                pool = branded
                intro = (
                    f"{brand_label} {constraints.category} "
                    "bo'yicha variantlar:"
                )
            else:
                intro = (
                    f"{brand_label} bo'yicha aniq mos mahsulot topilmadi. "
                    "Mana mavjud variantlar:"
                )
        picks = CatalogFilter.representative(pool, size)
        if len(picks) < minimum:
            return None
        follow_up = (
            "Agar budjet va maqsadni aytsangiz, yanada aniqroq "
            "tavsiya qilaman."
        )
        if constraints.category.lower() == "storage":
            follow_up = (
                "Hajm va turini yozsangiz (1TB/2TB, NVMe/SATA), "
                "aniqroq tavsiya qilaman."
            )
        return (
            f"{intro}\n\n"
            + "\n".join(CatalogFilter.format_lines(picks, numbered=True))
            + f"\n\n{follow_up}"
        )

    # ── Public API ───────────────────────────────────────

    def process_message(self, user_id: int, text: str) -> ChatReply:
        """Answer *text* for *user_id* and record the exchange."""
        history = self.history.get_history(
            user_id, self.settings.HISTORY_LIMIT
        )
        snapshot = self.store.get_text_snapshot()
        available = ""
        if snapshot is not None:
            available = CatalogFilter.filter_in_stock(snapshot.text)
        has_catalog = bool(available.strip())

        constraints = self.extractor.extract(
            text, history, available if has_catalog else ""
        )
        logger.info(
            "User %d: budget=%d category=%r purpose=%r inquiry=%s",
            user_id,
            constraints.budget,
            constraints.category,
            constraints.purpose,
            constraints.is_inquiry,
        )

        if has_catalog and snapshot is not None:
            view = self.build_catalog_view(text, constraints, available)
            if isinstance(view, OverBudgetNotice):
                return self._finish(
                    user_id,
                    text,
                    ChatReply(
                        view.message, ReplyStatus.OVER_BUDGET, constraints
                    ),
                )
            view.label = snapshot.label
            prompt = build_catalog_prompt(text, constraints, view)
        else:
            products = [p for p in self.store.search(text) if p.in_stock]
            if not products:
                products = self.store.get_available()
            if products:
                prompt = build_products_prompt(text, products)
            else:
                logger.info("No catalog loaded; answering without one")
                prompt = build_no_catalog_prompt(text)

        reply_text, status = self._generate(prompt, history)
        reply = ChatReply(reply_text, status, constraints)
        if status is ReplyStatus.GENERATION_FAILED:
            return reply
        if status is not ReplyStatus.ANSWERED or not has_catalog:
            return self._finish(user_id, text, reply)

        budget_catalog = None
        if constraints.has_budget:
            budget_catalog = CatalogFilter.filter_by_budget(
                available, constraints.budget
            )
        outcome = ResponseValidator.validate(
            reply_text, available, budget_catalog
        )
        reply.text = outcome.text
        reply.corrections = len(outcome.corrections)
        reply.suspect_prices = outcome.suspect_prices
        if outcome.is_flagged and budget_catalog is not None:
            logger.warning("Reply discarded for user %d", user_id)
            reply.text = self._budget_template(budget_catalog)
            reply.status = ReplyStatus.TEMPLATE
            return self._finish(user_id, text, reply)

        if constraints.is_inquiry and constraints.has_category:
            enriched = self._enrich_sparse_reply(
                reply.text, constraints, available
            )
            if enriched is not None:
                reply.text = enriched
                reply.status = ReplyStatus.TEMPLATE
        return self._finish(user_id, text, reply)

    async def process_message_async(
        self, user_id: int, text: str,
    ) -> ChatReply:
        """Run :meth:`process_message` off the event loop."""
        return await asyncio.to_thread(self.process_message, user_id, text)

    def _finish(self, user_id: int, text: str, reply: ChatReply) -> ChatReply:
        self.history.save_turn(
            user_id, HistoryTurn(text=text, response=reply.text)
        )
        return reply

