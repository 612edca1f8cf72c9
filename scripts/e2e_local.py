"""Local end-to-end run of the Vispark video flow.

Drives the VideoProcessor through the real HTTP API: transcript, streamed
summary, video details and vispark persistence, against live YouTube and LLM
providers and a real PostgreSQL.

Prerequisites:
    docker compose up -d   (PostgreSQL + Redis)
    YOUTUBE_API_KEY, LLM_MODEL (+ provider key) and SUPABASE_JWT_SECRET set

Usage:
    uv run python scripts/e2e_local.py [video_id]
"""

import asyncio
import subprocess
import sys
import traceback
import uuid

import httpx
from sqlalchemy import delete

from vispark.app import create_app
from vispark.auth import create_access_token
from vispark.client import VisparkClient
from vispark.database import async_session
from vispark.models import Vispark
from vispark.processing import Step, VideoProcessor

DEFAULT_VIDEO_ID = "jNQXAC9IVRw"


def step(n: int, title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  Step {n}: {title}")
    print(f"{'='*60}")


async def cleanup(user_id):
    async with async_session() as db:
        result = await db.execute(delete(Vispark).where(Vispark.user_id == user_id))
        await db.commit()
    print(f"  Removed {result.rowcount} vispark(s) for {user_id}")


async def process(client: VisparkClient, video_id: str):
    processor = VideoProcessor(
        client,
        on_complete=lambda: print("  on_complete fired"),
        on_error=lambda message: print(f"  on_error fired: {message}"),
    )
    state = await processor.run(video_id)
    assert state.step == Step.complete, f"Processing ended in {state.step} ({state.error})"
    assert state.summary, "No summary bullets were produced"

    print(f"  Transcript: {len(state.transcript)} characters")
    title = state.video_metadata.title if state.video_metadata else None
    print(f"  Title:      {title}")
    for bullet in state.summary:
        print(f"    - {bullet}")
    return state


async def verify(client: VisparkClient, video_id: str):
    visparks = await client.list_visparks()
    assert any(v.video_id == video_id for v in visparks), "Vispark was not persisted"
    print(f"  GET /visparks            -> {len(visparks)} vispark(s)")

    r = await client.http.get(f"/visparks/{video_id}", headers=client._headers())
    assert r.status_code == 200, f"/visparks/{{videoId}} returned {r.status_code}"
    print("  GET /visparks/{videoId}  -> 200")


async def main(video_id: str):
    failed = False
    user_id = uuid.uuid4()

    try:
        step(1, "Run Alembic migrations")
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            print(f"  FAILED:\n{result.stderr}")
            sys.exit(1)
        print("  Migrations applied successfully")

        app = create_app()
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(
            transport=transport, base_url="http://test", timeout=120
        ) as http:
            client = VisparkClient(access_token=create_access_token(user_id), http=http)

            step(2, "Health check")
            r = await http.get("/health")
            assert r.status_code == 200, f"/health returned {r.status_code}"
            print("  GET /health              -> 200 OK")

            step(3, f"Process video {video_id} (live network)")
            await process(client, video_id)

            step(4, "Verify vispark via HTTP API")
            await verify(client, video_id)

        print(f"\n{'='*60}")
        print("  E2E RUN PASSED")
        print(f"{'='*60}\n")

    except Exception:
        failed = True
        traceback.print_exc()
        print(f"\n{'='*60}")
        print("  E2E RUN FAILED")
        print(f"{'='*60}\n")

    finally:
        try:
            await cleanup(user_id)
        except Exception:
            traceback.print_exc()

    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else DEFAULT_VIDEO_ID))
