"""Summarize a YouTube video through a 0G compute provider.

Prints the wallet balance on the configured EVM RPC, fetches the video's
transcript and summarizes it with the provider endpoint.

Prerequisites:
    COMPUTE_PROVIDER_ENDPOINT, COMPUTE_MODEL and COMPUTE_REQUEST_HEADERS set
    (COMPUTE_RPC_URL defaults to the 0G testnet)

Usage:
    uv run python scripts/compute_demo.py <wallet_address> [video_id]
"""

import asyncio
import sys
import traceback

from vispark.errors import MisconfiguredError, UpstreamError
from vispark.services.compute import ComputeClient, format_ether
from vispark.services.transcripts import TranscriptService

DEFAULT_VIDEO_ID = "jNQXAC9IVRw"


def step(n: int, title: str) -> None:
    print(f"\n{'='*60}")
    print(f"  Step {n}: {title}")
    print(f"{'='*60}")


async def main(address: str, video_id: str):
    compute = ComputeClient()
    failed = False

    try:
        step(1, f"Wallet balance on {compute.rpc_url}")
        wei = await compute.get_balance(address)
        print(f"  {address}: {format_ether(wei)} OG")

        step(2, f"Fetch transcript for {video_id}")
        result = await TranscriptService().fetch(video_id, local=True)
        print(f"  {len(result.transcript)} segment(s), lang={result.lang}")

        step(3, f"Summarize with {compute.model} at {compute.provider_endpoint}")
        summary = await compute.summarize(result.transcript)
        for bullet in summary.bullets:
            print(f"    - {bullet}")

    except (UpstreamError, MisconfiguredError):
        failed = True
        traceback.print_exc()

    print(f"\n{'='*60}")
    print(f"  COMPUTE DEMO {'FAILED' if failed else 'PASSED'}")
    print(f"{'='*60}\n")
    sys.exit(1 if failed else 0)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)
    asyncio.run(main(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else DEFAULT_VIDEO_ID))
