"""Backfill transcripts into the vector index.

Indexes every transcript that was never indexed, or was indexed under an
older chunk layout (e.g. before metadata chunks existed).

Usage:
    python scripts/backfill_vector_index.py [--user USER_ID] [--dry-run]
"""

import argparse
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.api.dependencies import build_embedding_client, build_indexer, build_vector_store
from src.config import get_settings
from src.ingestion.pipeline import needs_reindex
from src.ingestion.storage import SupabaseTranscriptStore, get_supabase_client


def backfill(user_id: str | None = None, dry_run: bool = False, delay: float = 0.5) -> int:
    """Index stale transcripts one at a time. Returns the number that failed."""
    settings = get_settings()
    vector_store = build_vector_store(settings)
    if not vector_store.is_configured():
        print("Vector store is not configured. Set QDRANT_URL (and QDRANT_API_KEY).")
        return 1

    vector_store.ensure_collection()
    transcripts = SupabaseTranscriptStore(get_supabase_client(settings))
    indexer = build_indexer(
        settings, transcripts, build_embedding_client(settings), vector_store
    )

    records = transcripts.list_transcripts(user_id)
    stale = [t for t in records if needs_reindex(t)]
    print(f"Found {len(records)} transcripts, {len(stale)} need (re)indexing")

    if dry_run:
        for t in stale:
            print(f"  would index {t.display_title} ({t.id})")
        return 0

    indexed = skipped = failed = 0
    for i, transcript in enumerate(stale):
        progress = f"[{i + 1}/{len(stale)}]"
        try:
            count = indexer.index_transcription(transcript.user_id, transcript.id)
            if count > 0:
                print(f"  {progress} Indexed {transcript.display_title} -- {count} chunks")
                indexed += 1
            else:
                print(f"  {progress} SKIP {transcript.display_title} -- no chunks produced")
                skipped += 1
        except Exception as e:
            print(f"  {progress} ERROR {transcript.id}: {e}")
            failed += 1

        # Spread embedding calls out to stay under the provider's rate limit
        if delay and i < len(stale) - 1:
            time.sleep(delay)

    print(f"\nDone! Indexed {indexed}, skipped {skipped}, failed {failed}.")
    return 1 if failed else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--user", default=None, help="Only backfill this user's transcripts")
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--delay", type=float, default=0.5, help="Seconds between transcripts")
    args = parser.parse_args()
    sys.exit(backfill(user_id=args.user, dry_run=args.dry_run, delay=args.delay))
