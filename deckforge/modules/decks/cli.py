from __future__ import annotations

import argparse
import json
from pathlib import Path

from deckforge.core.errors import DeckforgeError
from deckforge.core.logging import setup_logging
from deckforge.modules.decks.export import export_apkg
from deckforge.modules.decks.main import build_memory_service
from deckforge.modules.decks.models import Density
from deckforge.modules.decks.pipeline import PipelineEvent

LOCAL_USER_ID = 1


def _print_event(event: PipelineEvent) -> None:
    print(f"[{event.stage.value}] {event.message}", flush=True)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="deckforge", description="Generate Anki flashcards from a PDF"
    )
    sub = parser.add_subparsers(dest="cmd", required=True)

    g = sub.add_parser("generate", help="Generate a deck from a PDF")
    g.add_argument("--pdf", required=True, help="Path to the PDF file")
    g.add_argument(
        "--density",
        choices=[d.value for d in Density],
        default=Density.LOW.value,
        help="Target deck size",
    )
    g.add_argument("--apkg", help="Also write an Anki package to this path")
    g.add_argument(
        "--credits",
        type=int,
        default=1000,
        help="Local credit balance for the run",
    )
    g.add_argument("--quiet", action="store_true", help="Do not print progress")

    args = parser.parse_args(argv)
    if args.cmd == "generate":
        setup_logging("WARNING" if args.quiet else None)
        pdf_path = Path(args.pdf)
        if not pdf_path.is_file():
            raise SystemExit(f"PDF not found: {pdf_path}")

        svc = build_memory_service(
            balances={LOCAL_USER_ID: args.credits}, mode="credits"
        )
        try:
            result = svc.generate_sync(
                LOCAL_USER_ID,
                pdf_path.read_bytes(),
                pdf_path.name,
                Density(args.density),
                on_event=None if args.quiet else _print_event,
            )
        except DeckforgeError as e:
            print(f"Error: {e.user_message}")
            return 1

        if args.apkg:
            Path(args.apkg).write_bytes(export_apkg(result.deck))
        print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
        return 0

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
