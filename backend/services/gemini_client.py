#!/usr/bin/env python3
"""
Gemini REST client.

Thin wrapper over the ``generateContent`` endpoint. Every failure mode
(transport error, non-200, blocked or empty candidate, unparsable JSON)
surfaces as ScoringError so callers can pick their fallback explicitly.
"""

import json
import logging
from typing import Dict, Optional

import requests

from config import config
from errors import ScoringError

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiClient:
    def __init__(self, api_key: str = None, model: str = None, timeout: int = None,
                 session: requests.Session = None):
        self.api_key = config.GEMINI_API_KEY if api_key is None else api_key
        self.model = model or config.GEMINI_MODEL
        self.timeout = timeout or config.LLM_TIMEOUT_SECONDS
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _endpoint(self) -> str:
        return f"{GEMINI_BASE_URL}/{self.model}:generateContent"

    def _generate(self, prompt: str, system_instruction: str = None,
                  generation_config: Dict = None) -> str:
        if not self.configured:
            raise ScoringError("GEMINI_API_KEY not configured")

        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        if generation_config:
            body["generationConfig"] = generation_config

        try:
            response = self.session.post(
                self._endpoint(),
                params={"key": self.api_key},
                json=body,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise ScoringError(f"Gemini request failed: {e}")

        if response.status_code != 200:
            raise ScoringError(
                f"Gemini returned HTTP {response.status_code}",
                {"body": response.text[:500]}
            )

        try:
            data = response.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ScoringError(f"Unexpected Gemini response shape: {e}")

        if not text or not text.strip():
            raise ScoringError("Empty response from Gemini API")
        return text

    def generate_text(self, prompt: str) -> str:
        """Free-text completion"""
        return self._generate(prompt).strip()

    def generate_json(self, prompt: str, system_instruction: str = None,
                      response_schema: Optional[Dict] = None) -> Dict:
        """
        Structured completion.

        Asks for ``application/json`` output (with a response schema when
        given) and parses it. Keys listed under the schema's ``required`` must
        be present in the result.
        """
        generation_config = {"responseMimeType": "application/json"}
        if response_schema:
            generation_config["responseSchema"] = response_schema

        text = self._generate(prompt, system_instruction, generation_config)

        try:
            result = json.loads(text)
        except json.JSONDecodeError as e:
            raise ScoringError(f"Gemini returned invalid JSON: {e}")

        if not isinstance(result, dict):
            raise ScoringError("Gemini returned a non-object JSON payload")

        missing = [key for key in (response_schema or {}).get("required", []) if key not in result]
        if missing:
            raise ScoringError(f"Gemini response missing fields: {', '.join(missing)}")

        return result
