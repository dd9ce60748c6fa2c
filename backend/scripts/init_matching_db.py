"""Create the matching tables, pgvector extension and indexes."""

import asyncio
import sys
from pathlib import Path

import asyncpg

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from app.matching.infra.schema import statements  # noqa: E402
from app.settings import settings  # noqa: E402


async def main() -> None:
    print(f"Connecting to {settings.postgres_url}...")
    conn = await asyncpg.connect(settings.postgres_url)
    try:
        async with conn.transaction():
            for statement in statements():
                await conn.execute(statement)
        print(f"Matching schema ready (embedding dimensions: {settings.embedding_dimensions}).")
    finally:
        await conn.close()


if __name__ == "__main__":
    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main())
