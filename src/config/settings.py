# src/config/settings.py

"""Central configuration for the catalog_assistant engine."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the catalog_assistant engine."""

    # --- Generator ---
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")
    GEMINI_ENDPOINT: str = (
        "https://generativelanguage.googleapis.com/v1beta/models"
    )
    REQUEST_TIMEOUT: int = 30           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Generator attempts per message
    RETRY_DELAY: float = 2.0            # Base backoff between attempts
    GENERATION_TEMPERATURE: float = 0.3
    IMPERSONATE_BROWSER: str = "chrome"
    SYSTEM_INSTRUCTION: str = (
        "Sen kompyuter do'konining xodimisan. Faqat berilgan katalogdagi "
        "nom va narxlarni ishlat, har variantni [NOM] - [NARX]$ ko'rinishida "
        "yoz va budjetdan qimmat mahsulot taklif qilma."
    )
    SAFETY_BLOCK_REPLY: str = (
        "Kechirasiz, bu so'rovga javob bera olmayman. "
        "Iltimos, savolingizni boshqacha yozing."
    )
    GENERATION_FAILED_REPLY: str = (
        "Kechirasiz, hozir javob tayyorlab bo'lmadi. "
        "Birozdan so'ng qayta urinib ko'ring."
    )

    # --- Conversation ---
    HISTORY_LIMIT: int = 20             # Turns loaded per message
    HISTORY_SCAN_TURNS: int = 5         # Turns scanned for missing constraints
    MAX_HISTORY_SIZE: int = 50          # Turns kept per user in memory

    # --- Constraint extraction ---
    MIN_BUDGET: int = 50                # Smaller numbers are not budgets
    MAX_BRANDS: int = 2
    MAX_MODEL_TOKENS: int = 3

    # --- Catalog listings ---
    LISTING_SIZE: int = 5               # Variants offered in templates
    MIN_VARIANTS: int = 3               # Fewer priced variants = sparse reply

    # --- Price validation ---
    PRICE_TOLERANCE_ABS: float = 10.0
    PRICE_TOLERANCE_PCT: float = 0.10

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"
