"""Configuration and runtime constants."""

import os
from datetime import timedelta
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# API Keys
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
TRANSLATION_API_KEY = os.getenv("TRANSLATION_API_KEY") or os.getenv("GOOGLE_TRANSLATE_API_KEY")

# Translation Configuration
TRANSLATION_API_URL = os.getenv(
    "TRANSLATION_API_URL", "https://translation.googleapis.com/language/translate/v2"
)
SOURCE_LANG = os.getenv("SOURCE_LANG", "en")
TARGET_LANG = os.getenv("TARGET_LANG", "bo")  # Tibetan
TRANSLATION_BATCH_SIZE = int(os.getenv("TRANSLATION_BATCH_SIZE", "5"))
TRANSLATION_BATCH_DELAY = float(os.getenv("TRANSLATION_BATCH_DELAY", "0.1"))  # seconds
TRANSLATION_CACHE_TTL = timedelta(days=7)

# Image Configuration
IMAGE_MODEL = os.getenv("IMAGE_MODEL", "dall-e-3")
IMAGE_SIZE = os.getenv("IMAGE_SIZE", "1024x1024")  # "1024x1024", "1792x1024", "1024x1792"
ADD_IMAGE_DELAY = float(os.getenv("ADD_IMAGE_DELAY", "2.0"))
BACKFILL_IMAGE_DELAY = float(os.getenv("BACKFILL_IMAGE_DELAY", "0.2"))

# Bulk add bounds
MIN_WORDS = 2
MAX_WORDS = 100
SUPPORTED_CARD_TYPES = ("word", "phrase")

# Review tag attached to bulk-created cards
REVIEW_TAG_NAME = "new"
REVIEW_TAG_DESCRIPTION = "Cards created via bulk add, pending review"

# Retry Configuration (persistence calls only)
RETRY_MAX_RETRIES = int(os.getenv("RETRY_MAX_RETRIES", "3"))
RETRY_INITIAL_DELAY = float(os.getenv("RETRY_INITIAL_DELAY", "1.0"))
RETRY_MAX_DELAY = float(os.getenv("RETRY_MAX_DELAY", "10.0"))
RETRY_BACKOFF_MULTIPLIER = float(os.getenv("RETRY_BACKOFF_MULTIPLIER", "2.0"))

# Directory Configuration
DATA_DIR = Path(os.getenv("CARD_INGEST_DATA_DIR", "data"))

# File paths
CARDS_DB = Path(os.getenv("CARD_INGEST_DB", str(DATA_DIR / "cards.sqlite")))
TRANSLATION_CACHE_FILE = DATA_DIR / "translation_cache.json"

# Testing Configuration
LIVE_TESTING = os.getenv("CARD_INGEST_LIVE", "0") == "1"
