"""Extraction of candidate records from free text and receipts via an LLM."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI

from condoledger.config import Settings, get_settings
from condoledger.domain import expense_categories, income_categories
from condoledger.errors import ExtractionServiceError

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = (
    "You read condominium documents (invoices, receipts, bank statements, notes) "
    "and extract every {kind} they mention. Answer with a JSON object "
    '{{"{kind}": [...]}} where each item has "description", "amount" (number), '
    '"date" (YYYY-MM-DD), "category" (one of: {categories}){extra}. '
    "Omit fields you cannot read."
)


@dataclass(frozen=True)
class FileInput:
    data: bytes
    mime_type: str
    name: str = ""


def _file_part(f: FileInput) -> Dict[str, Any]:
    encoded = base64.b64encode(f.data).decode("ascii")
    url = f"data:{f.mime_type};base64,{encoded}"
    if f.mime_type.startswith("image/"):
        return {"type": "image_url", "image_url": {"url": url}}
    return {"type": "file", "file": {"filename": f.name or "document", "file_data": url}}


def build_messages(text: str, files: Sequence[FileInput], kind: str = "expenses") -> List[Dict[str, Any]]:
    if kind == "expenses":
        categories, extra = expense_categories(), ', "status" ("paid" or "unpaid")'
    elif kind == "incomes":
        categories, extra = income_categories(), ""
    else:
        raise ValueError(f"Unknown extraction kind {kind!r}")
    system = PROMPT_TEMPLATE.format(kind=kind, categories=", ".join(categories), extra=extra)
    content: List[Dict[str, Any]] = [{"type": "text", "text": text or "See the attached documents."}]
    content.extend(_file_part(f) for f in files)
    return [{"role": "system", "content": system}, {"role": "user", "content": content}]


def parse_candidates(raw: Optional[str], kind: str = "expenses") -> List[Dict[str, Any]]:
    """Pull the candidate list out of the model's answer."""
    if not raw or not raw.strip():
        raise ExtractionServiceError("Empty response from extraction service")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ExtractionServiceError(f"Malformed response from extraction service: {e}") from e
    if isinstance(data, dict):
        data = data.get(kind)
    if not isinstance(data, list):
        raise ExtractionServiceError(f"Response has no '{kind}' list")
    candidates = [item for item in data if isinstance(item, dict)]
    if not candidates:
        raise ExtractionServiceError("No records found in the supplied documents")
    return candidates


class ExtractionClient:
    """Thin async wrapper; the OpenAI client can be injected for tests."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        self.settings = settings or get_settings()
        self.client = client or AsyncOpenAI(api_key=self.settings.openai_api_key)

    async def extract(
        self, text: str = "", files: Sequence[FileInput] = (), kind: str = "expenses"
    ) -> List[Dict[str, Any]]:
        if not text and not files:
            raise ExtractionServiceError("Nothing to extract from")
        messages = build_messages(text, files, kind)
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.settings.openai_model,
                    messages=messages,
                    response_format={"type": "json_object"},
                    temperature=0,
                ),
                timeout=self.settings.extraction_timeout_sec,
            )
            raw = response.choices[0].message.content
        except asyncio.TimeoutError as e:
            logger.warning("Extraction timed out after %ss", self.settings.extraction_timeout_sec)
            raise ExtractionServiceError("Extraction service timed out") from e
        except Exception as e:
            logger.warning("Extraction request failed: %s", e)
            raise ExtractionServiceError(f"Extraction service failed: {e}") from e

        try:
            candidates = parse_candidates(raw, kind)
        except ExtractionServiceError as e:
            logger.warning("Extraction returned unusable output: %s", e)
            raise
        logger.info("Extraction returned %d %s candidates", len(candidates), kind)
        return candidates
