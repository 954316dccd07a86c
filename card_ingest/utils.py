"""Utility functions for word input and identifiers."""

import uuid
from pathlib import Path
from typing import List

import structlog

log = structlog.get_logger()


def parse_words_text(text: str) -> List[str]:
    """Split pasted text into words, one per line. Blank lines and '#' comments are skipped."""
    words = []
    for line in text.splitlines():
        word = line.strip()
        if word and not word.startswith('#'):
            words.append(word)
    return words


def load_words_from_file(file_path: Path) -> List[str]:
    """Load words from a text file, one word per line."""
    if not file_path.exists():
        raise FileNotFoundError(f"Input file not found: {file_path}")

    words = parse_words_text(file_path.read_text(encoding='utf-8'))
    log.info("Loaded words from file", count=len(words), file=str(file_path))
    return words


def generate_card_id() -> str:
    return f"card_{uuid.uuid4().hex[:12]}"


def generate_tag_id() -> str:
    return f"tag_{uuid.uuid4().hex[:12]}"
