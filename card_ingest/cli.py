"""Command-line interface for bulk card ingestion."""

import asyncio
import logging
import signal
from pathlib import Path
from typing import List, Optional, Tuple

import click
import structlog

from .backfill import BulkImageBackfillPipeline, CancellationToken, filter_cards_needing_images
from .config import CARDS_DB, SUPPORTED_CARD_TYPES
from .errors import ValidationError
from .models import BackfillFilter, BackfillSummary, BulkAddRequest, BulkAddResult, Card, ProgressSnapshot
from .openai_client import OpenAIImageGenerator
from .pipeline import BulkAddPipeline
from .store import SQLiteCardStore
from .translate_client import GoogleTranslator
from .translation import get_translation_cache
from .utils import load_words_from_file, parse_words_text

log = structlog.get_logger()


def configure_logging(verbose: bool = False) -> None:
    """JSON logs by default, human-readable console output with --verbose."""
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING, format="%(message)s")
    renderer = structlog.dev.ConsoleRenderer() if verbose else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def echo_progress(snapshot: ProgressSnapshot) -> None:
    click.echo(f"[{snapshot.stage.value}] {snapshot.current}/{snapshot.total}")


def echo_add_summary(result: BulkAddResult) -> None:
    click.echo("")
    click.echo(f"Words:              {result.total_words}")
    click.echo(f"Cards created:      {result.cards_created}")
    click.echo(f"Duplicates skipped: {result.duplicates_skipped}")
    if result.duplicate_words:
        click.echo(f"  {', '.join(result.duplicate_words)}")
    for title, failures in (
        ("Duplicate check failures", result.duplicate_check_failures),
        ("Translation failures", result.translation_failures),
        ("Image failures", result.image_failures),
        ("Save errors", result.persist_errors),
    ):
        if failures:
            click.echo(f"{title}: {len(failures)}")
            for failure in failures:
                click.echo(f"  {failure.item_key}: {failure.reason}")


def echo_backfill_summary(summary: BackfillSummary) -> None:
    status = "cancelled" if summary.cancelled else "completed"
    click.echo("")
    click.echo(f"Backfill {status}: {summary.completed} completed, {summary.failed} failed, {summary.total} eligible")
    for failure in summary.failures:
        click.echo(f"  {failure.card_id} ({failure.item_key}): [{failure.stage.value}] {failure.reason}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def main(verbose: bool):
    """Bulk-create vocabulary cards and backfill their images."""
    configure_logging(verbose)


@main.command()
@click.argument("words", nargs=-1)
@click.option(
    "-i", "--input",
    "input_file",
    type=click.Path(exists=True, allow_dash=True, path_type=Path),
    help="Input file with words (one per line), - for stdin"
)
@click.option(
    "--type", "card_type",
    type=click.Choice(SUPPORTED_CARD_TYPES),
    default="word",
    show_default=True,
    help="Card type for every created card"
)
@click.option("--category", "category_ids", multiple=True, help="Category id to attach (repeatable)")
@click.option("--level", "instruction_level_id", default=None, help="Instruction level id")
@click.option(
    "--mark-review/--no-mark-review",
    default=True,
    show_default=True,
    help="Attach the review tag to created cards"
)
@click.option("--db", type=click.Path(path_type=Path), default=CARDS_DB, show_default=True, help="Card database")
def add(words: Tuple[str, ...], input_file: Optional[Path], card_type: str, category_ids: Tuple[str, ...],
        instruction_level_id: Optional[str], mark_review: bool, db: Path):
    """Create cards for 2-100 new words."""
    word_list: List[str] = list(words)
    if input_file and str(input_file) == "-":
        word_list.extend(parse_words_text(click.get_text_stream("stdin").read()))
    elif input_file:
        word_list.extend(load_words_from_file(input_file))

    request = BulkAddRequest(
        words=word_list,
        card_type=card_type,
        category_ids=list(category_ids),
        instruction_level_id=instruction_level_id,
        mark_as_review=mark_review,
    )

    store = SQLiteCardStore(db)
    store.init_database()
    cache = get_translation_cache()
    cache.init()

    pipeline = BulkAddPipeline(store, store, GoogleTranslator(), OpenAIImageGenerator(), cache=cache)
    try:
        result = asyncio.run(pipeline.submit(request, on_progress=echo_progress))
    except ValidationError as e:
        raise click.ClickException(str(e))
    finally:
        cache.flush()

    echo_add_summary(result)


@main.command()
@click.option("--type", "card_type", type=click.Choice(SUPPORTED_CARD_TYPES), default=None, help="Only this card type")
@click.option("--category", "category_id", default=None, help="Only cards in this category")
@click.option("--level", "instruction_level_id", default=None, help="Only cards at this instruction level")
@click.option("--db", type=click.Path(path_type=Path), default=CARDS_DB, show_default=True, help="Card database")
@click.option("--dry-run", is_flag=True, help="List eligible cards without generating images")
def backfill(card_type: Optional[str], category_id: Optional[str], instruction_level_id: Optional[str],
             db: Path, dry_run: bool):
    """Generate images for stored cards that have none. Ctrl-C stops after the current card."""
    store = SQLiteCardStore(db)
    store.init_database()
    backfill_filter = BackfillFilter(
        card_type=card_type, category_id=category_id, instruction_level_id=instruction_level_id
    )

    async def run() -> None:
        loaded = await store.load_all()
        if not loaded.success:
            raise click.ClickException(f"Could not load cards: {loaded.error}")
        cards: List[Card] = loaded.data

        if dry_run:
            for card in filter_cards_needing_images(cards, backfill_filter):
                click.echo(f"{card.id}\t{card.type}\t{card.text or card.back_english or card.front}")
            return

        token = CancellationToken()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, token.cancel)
        except NotImplementedError:
            log.warning("Cancellation via Ctrl-C is not supported on this platform")

        pipeline = BulkImageBackfillPipeline(store, OpenAIImageGenerator())
        await pipeline.run(
            cards,
            backfill_filter,
            on_progress=echo_progress,
            on_complete=echo_backfill_summary,
            token=token,
        )

    asyncio.run(run())


if __name__ == "__main__":
    main()
