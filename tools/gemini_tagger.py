"""Gemini-backed clothing tagger used by the trusted server's clothes finder."""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from typing import Any, Dict, Tuple

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from tools.vision_providers import ProviderError

logger = logging.getLogger(__name__)

GENERATION_CONFIG = {"temperature": 0.2, "max_output_tokens": 800}
JSON_MODES = {"detail", "brand", "similarity"}

_TAG_PROMPT = (
    "Analyze this fashion image and identify all clothing items and accessories.\n"
    "List each item on a new line.\n"
    "Be specific about colors, patterns, and styles.\n"
)

PROMPTS: Dict[str, str] = {
    "tag": _TAG_PROMPT
    + "Include only what you can clearly see in the image.\n"
    "Format as a simple list without numbering.",
    "detail": (
        "Analyze this fashion outfit in detail.\n"
        "Respond in JSON with the keys: tags (list of key clothing items and descriptors), "
        "category (one of top, bottom, dress, outerwear, shoes, accessories, bags, other), "
        "brand (empty if not visible), brand_confidence (0.0 to 1.0), color, pattern, material, "
        "style, season (list), occasion (list), confidence_score (0.0 to 1.0).\n"
        "Only include fields where you have reasonable confidence. "
        "For any field you are unsure about, use null or an empty list."
    ),
    "style": (
        "Analyze this fashion image and provide:\n"
        "1. Overall style category (e.g. casual, formal, bohemian)\n"
        "2. Season appropriateness\n"
        "3. Occasion suitability\n"
        "4. Key fashion elements that define the look\n"
        "5. Style tips or improvements\n"
        "Format as a list of key points."
    ),
    "brand": (
        "Analyze this fashion image and identify any visible brand logos, labels, or "
        "distinctive brand styles. If you detect a brand, provide the brand name, a confidence "
        "level (0-10), where the identifier is located and any distinctive features. "
        'If no brand is detectable, respond with "No brand detected." '
        "Format your response as a JSON object."
    ),
    "similarity": (
        "Analyze this fashion item in detail and describe the visual features useful for "
        "similarity matching. Respond with a JSON object with the keys: distinctive_features "
        "(list), category, color, pattern, material, design_elements (list)."
    ),
}

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
_LINE_PREFIX = re.compile(r"^[\d.\-*]+\s*")


def prompt_for_mode(mode: str) -> str:
    return PROMPTS.get(mode, _TAG_PROMPT)


def split_data_url(image_base64: str) -> Tuple[str, bytes]:
    """Return ``(mime_type, raw_bytes)`` for a data URL or bare base64 string."""

    mime_type = "image/jpeg"
    data = image_base64
    if "," in image_base64:
        header, data = image_base64.split(",", 1)
        if header.startswith("data:") and ";" in header:
            mime_type = header[len("data:") : header.index(";")] or mime_type
    try:
        return mime_type, base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Invalid image data") from exc


def parse_model_text(text: str, mode: str) -> Dict[str, Any]:
    """Turn the model's free text into the clothes-finder response body.

    JSON modes return the first JSON object found in the text. Tag mode
    returns one tag per non-empty line with list markers stripped. Anything
    else falls back to the raw lines.
    """

    if mode in JSON_MODES:
        match = _JSON_BLOCK.search(text)
        if match:
            try:
                parsed = json.loads(match.group(0))
            except ValueError:
                logger.warning("Model returned malformed JSON", extra={"mode": mode})
            else:
                if isinstance(parsed, dict):
                    parsed["_source_text"] = text
                    return parsed

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if mode == "tag":
        return {"tags": [_LINE_PREFIX.sub("", line).strip() for line in lines]}
    if mode == "style":
        return {"style_analysis": lines, "_source_text": text}
    return {"tags": lines, "_source_text": text}


class GeminiImageTagger:
    """Calls a Gemini vision model with a mode-specific prompt."""

    name = "gemini"

    def __init__(self, api_key: str, model_name: str = "gemini-1.5-flash") -> None:
        if not api_key:
            raise ValueError("A Gemini API key is required")
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self._model = genai.GenerativeModel(model_name)

    def analyze(self, image_base64: str, mode: str = "tag") -> Dict[str, Any]:
        mime_type, data = split_data_url(image_base64)
        logger.info(
            "Requesting Gemini analysis",
            extra={"mode": mode, "model_name": self.model_name, "bytes": len(data)},
        )
        try:
            response = self._model.generate_content(
                [{"mime_type": mime_type, "data": data}, prompt_for_mode(mode)],
                generation_config=GENERATION_CONFIG,
            )
            text = response.text
        except google_exceptions.GoogleAPIError as exc:
            message = str(exc)
            if "quota" in message.lower():
                raise ProviderError(self.name, "AI quota exceeded. Please try again later.") from exc
            raise ProviderError(self.name, f"Error analyzing image: {message}") from exc
        except ValueError as exc:
            raise ProviderError(self.name, "No analysis results received from the AI model.") from exc
        if not text:
            raise ProviderError(self.name, "No analysis results received from the AI model.")
        return parse_model_text(text, mode)


__all__ = ["GeminiImageTagger", "PROMPTS", "parse_model_text", "prompt_for_mode", "split_data_url"]
