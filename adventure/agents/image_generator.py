"""Scene art client for OpenAI-compatible image endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from adventure.agents.autogen_config import OpenAICompatibleSettings
from adventure.prompts import render_prompt

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


@dataclass(slots=True)
class OpenAIImageGenerator:
    """Calls POST {base_url}/images/generations and returns a data URI.

    Image art is optional: every failure is logged and reported as None.
    """

    settings: OpenAICompatibleSettings
    image_model: str
    size: str = "1024x1024"
    timeout: float = 120
    transport: httpx.AsyncBaseTransport | None = None

    async def request_image(self, description: str) -> str | None:
        base_url = (self.settings.base_url or DEFAULT_BASE_URL).rstrip("/")
        url = f"{base_url}/images/generations"
        headers: dict[str, str] = {}
        if self.settings.api_key:
            headers["Authorization"] = f"Bearer {self.settings.api_key}"

        body = {
            "model": self.image_model,
            "prompt": render_prompt("scene_image.txt", description=description.strip()),
            "size": self.size,
            "n": 1,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(url, json=body, headers=headers)
                resp.raise_for_status()
        except httpx.ConnectError:
            logger.warning("Cannot connect to image provider at %s", base_url)
            return None
        except httpx.HTTPStatusError as e:
            logger.warning("Image provider returned %s", e.response.status_code)
            return None
        except httpx.TimeoutException:
            logger.warning("Image provider timed out")
            return None
        except httpx.HTTPError as e:
            logger.warning("Image request failed: %s", e)
            return None

        try:
            data = resp.json()
        except ValueError:
            logger.warning("Image provider returned non-JSON body")
            return None

        items = data.get("data") if isinstance(data, dict) else None
        if not items or not isinstance(items[0], dict):
            logger.warning("Unexpected response format from image provider")
            return None

        first = items[0]
        if first.get("b64_json"):
            return f"data:image/png;base64,{first['b64_json']}"
        if first.get("url"):
            return str(first["url"])
        return None


@dataclass(frozen=True, slots=True)
class NullImageGenerator:
    """Used when scene art is disabled."""

    async def request_image(self, description: str) -> str | None:
        return None
