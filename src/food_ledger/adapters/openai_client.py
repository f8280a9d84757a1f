"""OpenAI Responses API client for food inference and narratives."""

from dataclasses import dataclass

import httpx
import openai
from openai import AsyncOpenAI

from food_ledger.errors import InferenceTimeout, InferenceTransportError
from food_ledger.services.inference import InferenceClient
from food_ledger.services.narrative import NarrativeClient


@dataclass
class OpenAIClient(InferenceClient, NarrativeClient):
    """Inference and narrative client backed by the OpenAI Responses API.

    Retries on transport failures happen inside the OpenAI SDK according to
    ``max_retries``; anything that still fails surfaces as
    ``InferenceTransportError``.
    """

    client: AsyncOpenAI
    model: str
    timeout_seconds: float = 60.0
    http_client: httpx.AsyncClient | None = None

    @classmethod
    def create(
        cls,
        api_key: str,
        model: str,
        timeout_seconds: float = 60.0,
        max_retries: int = 2,
    ) -> "OpenAIClient":
        """Create a client with a managed httpx session."""
        http_client = httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        return cls(
            client=AsyncOpenAI(
                api_key=api_key,
                max_retries=max_retries,
                http_client=http_client,
            ),
            model=model,
            timeout_seconds=timeout_seconds,
            http_client=http_client,
        )

    async def complete(self, prompt: str, image_data_url: str | None = None) -> str:
        """Send a prompt, with an optional image, and return the output text.

        An empty response yields an empty string; callers decide how to fall
        back.
        """
        content: list[dict[str, object]] = [{"type": "input_text", "text": prompt}]
        if image_data_url:
            content.append({"type": "input_image", "image_url": image_data_url})
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=[{"role": "user", "content": content}],
                store=False,
            )
        except openai.APITimeoutError as exc:
            raise InferenceTimeout(self.timeout_seconds) from exc
        except openai.APIError as exc:
            raise InferenceTransportError(f"OpenAI request failed: {exc}") from exc
        except httpx.HTTPError as exc:
            raise InferenceTransportError(f"HTTP transport failed: {exc}") from exc

        return response.output_text or ""

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self.http_client is not None:
            await self.http_client.aclose()
