"""Embed every group member that has profile text but no stored vector.

Usage: python scripts/backfill_embeddings.py [--group-id UUID] [--batch-size N]
"""

import argparse
import asyncio
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from app.infra import postgres  # noqa: E402
from app.matching import configure_openai, configure_postgres  # noqa: E402
from app.matching.domain import service  # noqa: E402
from app.obs.logging import configure_logging  # noqa: E402
from app.settings import settings  # noqa: E402


async def main(group_id: str | None, batch_size: int) -> int:
    if not settings.openai_api_key:
        print("OPENAI_API_KEY is not set; nothing to do.")
        return 1
    configure_logging()
    pool = await postgres.init_pool()
    try:
        configure_postgres(pool)
        configure_openai(settings.openai_api_key)
        result = await service.backfill_embeddings(group_id=group_id, batch_size=batch_size)
    finally:
        await postgres.close_pool()
    print(f"updated={result.updated} failed={result.failed} skipped={result.skipped}")
    return 0 if result.failed == 0 else 2


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--group-id", default=None)
    parser.add_argument("--batch-size", type=int, default=100)
    args = parser.parse_args()
    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    sys.exit(asyncio.run(main(args.group_id, args.batch_size)))
