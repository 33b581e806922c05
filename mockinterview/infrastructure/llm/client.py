"""
Vertex AI REST client for the assessment collaborator.
"""
import json
import time
import logging
from typing import Optional, Dict, Any, Callable

import requests
import google.auth
import google.auth.transport.requests
from google.oauth2 import service_account

from ...config import (
    VERTEX_LOCATION, MODEL_NAME, LLM_TIMEOUT, MAX_OUTPUT_TOKENS,
    LLM_MAX_RETRIES, LLM_BACKOFF_BASE_S,
)

logger = logging.getLogger("llm_client")

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]
JSON_INSTRUCTION = "Respond ONLY with minified JSON."


class RateLimitError(RuntimeError):
    """Vertex kept answering 429 after every retry."""


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Decode a JSON object from model output.

    Falls back to the outermost ``{...}`` span when the text carries prose
    or code fences around the object.

    Raises:
        ValueError: no JSON object could be decoded
    """
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("json.loads failed: %s", e)
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError(f"No JSON object in model output: {text[:500]}")
        try:
            parsed = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e2:
            raise ValueError(f"Could not extract valid JSON from model output: {e2}")
        logger.debug("Parsed JSON from substring")

    if not isinstance(parsed, dict):
        raise ValueError(f"Model returned {type(parsed).__name__}, expected a JSON object")
    return parsed


class VertexRestClient:
    """Gemini ``generateContent`` over REST with OAuth tokens from google-auth."""

    def __init__(self,
                 project: str,
                 location: str = VERTEX_LOCATION,
                 model: str = MODEL_NAME,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT,
                 max_retries: int = LLM_MAX_RETRIES,
                 backoff_base: float = LLM_BACKOFF_BASE_S,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.credentials_json = credentials_json
        self.endpoint = (
            f"https://{location}-aiplatform.googleapis.com/v1/projects/{project}"
            f"/locations/{location}/publishers/google/models/{model}:generateContent"
        )
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.session = session or requests.Session()
        self._sleep = sleep
        self._credentials = None

    def _access_token(self) -> str:
        """Current OAuth token; refreshed when missing or expired."""
        if self._credentials is None:
            if self.credentials_json:
                self._credentials = service_account.Credentials.from_service_account_file(
                    self.credentials_json, scopes=SCOPES,
                )
            else:
                self._credentials, _ = google.auth.default(scopes=SCOPES)
        if not self._credentials.valid:
            logger.debug("Refreshing Vertex access token")
            self._credentials.refresh(google.auth.transport.requests.Request())
        return self._credentials.token

    def _post(self, body: Dict[str, Any]) -> requests.Response:
        """POST with exponential backoff on HTTP 429 (2s, 4s, ...)."""
        for attempt in range(self.max_retries):
            headers = {
                "Authorization": f"Bearer {self._access_token()}",
                "Content-Type": "application/json",
            }
            resp = self.session.post(self.endpoint, headers=headers, json=body, timeout=self.timeout)
            if resp.status_code != 429:
                return resp
            if attempt < self.max_retries - 1:
                delay = self.backoff_base * (2 ** attempt)
                logger.warning(f"Rate limited by Vertex, retrying in {delay:.0f}s "
                               f"(attempt {attempt + 1}/{self.max_retries})")
                self._sleep(delay)
        raise RateLimitError(f"Vertex REST error 429 after {self.max_retries} attempts: {resp.text}")

    def generate_content(self, prompt_text: str, temperature: float = 0.0,
                         max_output_tokens: int = MAX_OUTPUT_TOKENS,
                         response_mime_type: Optional[str] = None) -> str:
        """Single-turn generation. Returns the first text part of the first candidate."""
        generation_config: Dict[str, Any] = {
            "temperature": float(temperature),
            "maxOutputTokens": int(max_output_tokens),
        }
        if response_mime_type:
            generation_config["responseMimeType"] = response_mime_type
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt_text}]}],
            "generationConfig": generation_config,
        }

        resp = self._post(body)
        if resp.status_code >= 400:
            raise RuntimeError(f"Vertex REST error {resp.status_code}: {resp.text}")
        return self._candidate_text(resp.json())

    @staticmethod
    def _candidate_text(resp_json: Dict[str, Any]) -> str:
        for candidate in resp_json.get("candidates") or []:
            parts = (candidate.get("content") or {}).get("parts") or []
            texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
            if texts:
                return "".join(texts)
            # A blocked or truncated candidate has no parts
            logger.warning(f"Candidate without text (finishReason={candidate.get('finishReason')})")
        if isinstance(resp_json.get("text"), str):
            return resp_json["text"]
        raise RuntimeError(f"Vertex response has no text: {json.dumps(resp_json)[:500]}")

    def generate_json(self, prompt: str, temperature: float = 0.0,
                      max_output_tokens: int = MAX_OUTPUT_TOKENS) -> Dict[str, Any]:
        """
        Generate a JSON object. The prompt is suffixed with a JSON-only instruction.

        Raises:
            ValueError: the model did not return a JSON object
            RuntimeError: transport or API failure (RateLimitError for 429)
        """
        try:
            text = self.generate_content(f"{prompt.strip()}\n\n{JSON_INSTRUCTION}",
                                         temperature=temperature,
                                         max_output_tokens=max_output_tokens,
                                         response_mime_type="application/json")
        except (RuntimeError, requests.RequestException) as e:
            logger.error("LLM request failed: %s", e)
            raise
        logger.debug("Raw LLM output: %r", text)
        return extract_json_object(text)
