"""Summaries through a decentralized inference provider on the 0G network.

The provider speaks the OpenAI chat completions protocol at its own endpoint.
Each request must carry the billing headers issued by the network's broker;
they are read from ``COMPUTE_REQUEST_HEADERS`` as a JSON object.
"""

from __future__ import annotations

import logging
from decimal import Decimal

import httpx

from vispark.config import settings
from vispark.errors import MisconfiguredError, UpstreamError
from vispark.schemas import SummaryResult, TranscriptSegment
from vispark.services.http import client_session, upstream_payload
from vispark.services.llm import LLMService

logger = logging.getLogger(__name__)

WEI_PER_ETHER = Decimal(10) ** 18


def format_ether(wei: int) -> str:
    value = Decimal(wei) / WEI_PER_ETHER
    text = format(value.normalize(), "f")
    return text if "." in text else f"{text}.0"


class ComputeClient:
    def __init__(
        self,
        rpc_url: str | None = None,
        provider_endpoint: str | None = None,
        model: str | None = None,
        request_headers: dict[str, str] | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.rpc_url = rpc_url or settings.compute_rpc_url
        self.provider_endpoint = provider_endpoint or settings.compute_provider_endpoint
        self.model = model or settings.compute_model
        self.request_headers = request_headers or settings.compute_request_headers
        self.http = http
        self._request_id = 0

    async def _rpc(self, method: str, params: list) -> object:
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}
        async with client_session(self.http) as client:
            try:
                response = await client.post(self.rpc_url, json=payload)
            except httpx.HTTPError as exc:
                raise UpstreamError(f"RPC {method} failed: {exc}") from exc
        if response.is_error:
            raise UpstreamError(f"RPC {method} failed: {response.status_code}")

        with upstream_payload(f"RPC {method}"):
            data = response.json()
            error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else error
            raise UpstreamError(f"RPC {method} failed: {message}")
        return data.get("result")

    async def get_balance(self, address: str) -> int:
        """Balance of ``address`` in wei at the latest block."""
        result = await self._rpc("eth_getBalance", [address, "latest"])
        if not isinstance(result, str):
            raise UpstreamError("RPC eth_getBalance returned no result")
        with upstream_payload("RPC eth_getBalance"):
            return int(result, 16)

    def llm(self) -> LLMService:
        if not self.provider_endpoint or not self.model:
            raise MisconfiguredError(
                "COMPUTE_PROVIDER_ENDPOINT or COMPUTE_MODEL is not set."
            )
        return LLMService(
            # litellm routes any OpenAI-compatible base through the openai/ prefix
            model=f"openai/{self.model}",
            api_key="0g",
            api_base=self.provider_endpoint,
            extra_headers=self.request_headers,
        )

    async def summarize(self, segments: list[TranscriptSegment]) -> SummaryResult:
        logger.info("Summarizing %d segments on %s", len(segments), self.provider_endpoint)
        return await self.llm().summarize(segments)
