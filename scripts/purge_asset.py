"""Operator entry point for deleting a stored asset by its delivery URL.

Used to remove assets orphaned when an update could not delete the old image.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass

from src.stockbuddy.config import load_cloudinary_settings
from src.stockbuddy.media.identifiers import require_public_id
from src.stockbuddy.media.media_errors import InvalidReferenceError, TransportError
from src.stockbuddy.media.media_models import DeletionOutcome
from src.stockbuddy.providers.providers_base import BlobTransport
from src.stockbuddy.providers.providers_factory import create_transport


@dataclass(slots=True)
class PurgeSummary:
    public_id: str
    outcome: DeletionOutcome | None
    dry_run: bool


async def perform_purge(url: str, *, dry_run: bool, transport: BlobTransport | None = None) -> PurgeSummary:
    """Resolve ``url`` and delete the asset unless ``dry_run`` is set."""
    public_id = require_public_id(url)
    if dry_run:
        return PurgeSummary(public_id=public_id, outcome=None, dry_run=True)

    transport = transport or create_transport("cloudinary", cloudinary=load_cloudinary_settings())
    outcome = await transport.remove(public_id)
    return PurgeSummary(public_id=public_id, outcome=outcome, dry_run=False)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete a stored image by its delivery URL.")
    parser.add_argument("url", help="Delivery URL of the asset to delete.")
    parser.add_argument("--dry-run", action="store_true", help="Only resolve the identifier.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None, *, transport: BlobTransport | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        summary = asyncio.run(perform_purge(args.url, dry_run=args.dry_run, transport=transport))
    except InvalidReferenceError as exc:
        print(f"purge failed: {exc}", file=sys.stderr)
        return 2
    except TransportError as exc:
        print(f"purge failed: {exc}", file=sys.stderr)
        return 2

    if summary.outcome is None:
        print(f"purge dry-run, public_id={summary.public_id}", file=sys.stdout)
        return 0

    print(
        f"purge done, public_id={summary.public_id}, result={summary.outcome.status.value}",
        file=sys.stdout,
    )
    return 0 if summary.outcome.asset_gone else 1


if __name__ == "__main__":
    sys.exit(main())
