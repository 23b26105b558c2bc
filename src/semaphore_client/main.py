"""
Classification Server Command Line
==================================

A small command-line front end for `ClassificationClient`, configured from
environment variables (see `config.Settings`). It can classify a file, list
rule net classes and languages, and print the server version.

Calls are retried with exponential backoff on timeouts and transport
failures, using ``MAX_RETRIES`` and ``MAX_RETRY_BACKOFF_SECONDS``.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

import structlog

from .client import ClassificationClient
from .config import Settings
from .exceptions import FatalTransportError, SemaphoreError, TimeoutFailure
from .logging_config import configure_logging
from .models import ArticleType, ClassificationOptions
from .utils import retry

RETRYABLE_ERRORS = (TimeoutFailure, FatalTransportError)

ARTICLE_CHOICES = {
    "default": ArticleType.DEFAULT,
    "server": ArticleType.SERVER_DEFAULT,
    "single": ArticleType.SINGLE_ARTICLE,
    "multi": ArticleType.MULTI_ARTICLE,
}


class RetryingCommands:
    """Runs client operations under the configured retry policy."""

    def __init__(self, client: ClassificationClient, settings: Settings):
        self.client = client
        self.settings = settings

    @retry(retryable_exceptions=RETRYABLE_ERRORS)
    def classify(self, text_mine: bool, **kwargs):
        if text_mine:
            return self.client.text_mine(**kwargs)
        return self.client.classify(**kwargs)

    @retry(retryable_exceptions=RETRYABLE_ERRORS)
    def classes(self, text_mine: bool) -> list[str]:
        if text_mine:
            return self.client.get_text_mining_classes()
        return self.client.get_classification_classes()

    @retry(retryable_exceptions=RETRYABLE_ERRORS)
    def languages(self):
        return self.client.get_languages()

    @retry(retryable_exceptions=RETRYABLE_ERRORS)
    def version(self) -> str:
        return self.client.get_version()


def _meta_pair(text: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {text!r}")
    return key, value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="semaphore-classify",
        description="Query a Semaphore Classification Server.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    classify = commands.add_parser("classify", help="Classify a file")
    classify.add_argument("path", type=Path)
    classify.add_argument("--title", default="")
    classify.add_argument("--threshold", type=int)
    classify.add_argument("--article", choices=sorted(ARTICLE_CHOICES), default="default")
    classify.add_argument(
        "--meta", action="append", default=[], type=_meta_pair, metavar="KEY=VALUE"
    )
    classify.add_argument("--text-mine", action="store_true")

    classes = commands.add_parser("classes", help="List rule net classes")
    classes.add_argument("--text-mine", action="store_true")

    commands.add_parser("languages", help="List server languages")
    commands.add_parser("version", help="Print the server version")
    return parser


def run(args: argparse.Namespace, commands: RetryingCommands) -> None:
    if args.command == "classify":
        options = ClassificationOptions(
            threshold=args.threshold,
            article_type=ARTICLE_CHOICES[args.article],
        )
        result = commands.classify(
            args.text_mine,
            title=args.title or args.path.name,
            document=args.path.read_bytes(),
            file_name=args.path.name,
            meta_values=dict(args.meta),
            options=options,
        )
        for error in result.errors:
            print(f"Server error: {error}", file=sys.stderr)
        sys.stdout.write(str(result))
    elif args.command == "classes":
        for name in commands.classes(args.text_mine):
            print(name)
    elif args.command == "languages":
        for language in commands.languages():
            marker = "*" if language.is_default else " "
            print(f"{marker} {language.id}\t{language.name}\t{language.display_name}")
    elif args.command == "version":
        print(commands.version())


def main(argv: list[str] | None = None) -> int:
    """Entry point for the ``semaphore-classify`` command."""
    args = build_parser().parse_args(argv)
    log = structlog.get_logger(__name__)

    try:
        settings = Settings()
    except ValueError as e:
        log.error("Configuration error", error=str(e))
        return 2

    configure_logging(settings)

    try:
        with ClassificationClient.from_settings(settings) as client:
            run(args, RetryingCommands(client, settings))
    except SemaphoreError as e:
        log.error("Request failed", error=str(e))
        return 1
    except OSError as e:
        log.error("Unable to read input file", path=str(e.filename), error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
