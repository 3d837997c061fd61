from __future__ import annotations

import base64
import json
import logging
import re
from pathlib import Path
from typing import Any, Protocol

import anyio
import google.generativeai as genai
import httpx
from google.generativeai import types as genai_types

from ..config import Settings
from ..errors import TicketExtractionError
from ..schemas.ticket import TicketImage

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

DEFAULT_PROMPT = (
    "Extraia os dados do bilhete de aposta da imagem e responda somente com um JSON "
    "contendo: casaDeAposta, tipster, esporte, jogo, torneio, pais, mercado, tipoAposta, "
    "valorApostado, odd, dataJogo (YYYY-MM-DD), status e descricaoApostaDetalhada. "
    'Use "" para informações ausentes.'
)


class TicketProvider(Protocol):
    name: str

    async def extract(self, image: TicketImage) -> dict[str, Any]:
        ...


def load_prompt(path: Path | None) -> str:
    if path is not None and path.exists():
        return path.read_text(encoding="utf-8")
    return DEFAULT_PROMPT


def build_prompt(prompt: str, caption: str | None) -> str:
    """Attach the user's caption as extra context for the model."""
    if not caption or not caption.strip():
        return prompt
    return (
        f"{prompt}\n\nTEXTO DA LEGENDA DA IMAGEM (use como referência adicional):\n"
        f'"""\n{caption.strip()}\n"""'
    )


def clean_model_output(raw_text: str) -> str:
    """Remove Markdown code fences that models like to wrap around JSON."""
    text = raw_text.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        text = text[first_newline + 1 :] if first_newline != -1 else ""
    if text.endswith("```"):
        text = text[: text.rfind("```")]
    return text.strip()


def parse_ai_json(raw_text: str) -> dict[str, Any]:
    cleaned = clean_model_output(raw_text)
    candidates = [cleaned]
    match = _JSON_OBJECT.search(cleaned)
    if match and match.group(0) != cleaned:
        candidates.append(match.group(0))
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise TicketExtractionError(f"Could not parse model output: {raw_text[:200]!r}")


class GeminiTicketProvider:
    """Ticket extraction through Google's Gemini API."""

    name = "gemini"

    def __init__(self, api_key: str, model_name: str = "gemini-2.5-flash", prompt: str = DEFAULT_PROMPT) -> None:
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model_name)
        self.prompt = prompt

    def _call_model(self, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        content: genai_types.ContentDict = [
            {"role": "user", "parts": [{"text": prompt}]},
            {"role": "user", "parts": [{"mime_type": mime_type, "data": image_bytes}]},
        ]
        response = self.model.generate_content(content)
        if not response or not response.text:
            raise TicketExtractionError("Gemini did not return any text.")
        return response.text

    async def extract(self, image: TicketImage) -> dict[str, Any]:
        prompt = build_prompt(self.prompt, image.caption)
        raw_text = await anyio.to_thread.run_sync(self._call_model, prompt, image.data, image.mime_type)
        return parse_ai_json(raw_text)


class DeepSeekTicketProvider:
    """Ticket extraction through DeepSeek's OpenAI-compatible chat endpoint."""

    name = "deepseek"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "deepseek-multimodal",
        base_url: str = "https://api.deepseek.com",
        prompt: str = DEFAULT_PROMPT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.prompt = prompt
        self.client = client or httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=httpx.Timeout(timeout=60.0, connect=10.0),
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _message_text(payload: dict[str, Any]) -> str:
        choices = payload.get("choices") or []
        message = (choices[0] or {}).get("message", {}) if choices else {}
        content = message.get("content")
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "\n".join(
                str(part.get("text") or part.get("content") or "")
                for part in content
                if isinstance(part, dict)
            ).strip()
        return ""

    async def extract(self, image: TicketImage) -> dict[str, Any]:
        encoded = base64.b64encode(image.data).decode("ascii")
        body = {
            "model": self.model,
            "temperature": 0.2,
            "max_tokens": 800,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "image_url", "image_url": {"url": f"data:{image.mime_type};base64,{encoded}"}},
                        {"type": "text", "text": build_prompt(self.prompt, image.caption)},
                    ],
                }
            ],
        }
        response = await self.client.post("/v1/chat/completions", json=body)
        response.raise_for_status()
        text = self._message_text(response.json())
        if not text:
            raise TicketExtractionError("DeepSeek returned an empty answer.")
        return parse_ai_json(text)


def build_ticket_providers(settings: Settings) -> list[TicketProvider]:
    """Configured fallback providers in priority order: DeepSeek, then Gemini."""
    prompt = load_prompt(settings.llm_ticket_prompt_path)
    providers: list[TicketProvider] = []
    if settings.deepseek_api_key:
        providers.append(
            DeepSeekTicketProvider(
                settings.deepseek_api_key,
                model=settings.deepseek_model,
                base_url=settings.deepseek_base_url,
                prompt=prompt,
            )
        )
    if settings.gemini_api_key:
        providers.append(GeminiTicketProvider(settings.gemini_api_key, settings.gemini_model, prompt))
    return providers
