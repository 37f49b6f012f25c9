from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx

from .config import AppConfig
from .logging_config import get_logger

logger = get_logger(__name__)


class LLMAPIError(RuntimeError):
  """
  Failure talking to the generative backend.

  ``status_code`` is None for transport failures. ``status`` and ``reason``
  hold the structured fields of a Google API error body when one was sent.
  """

  def __init__(
    self,
    message: str,
    status_code: Optional[int] = None,
    status: Optional[str] = None,
    reason: Optional[str] = None,
  ) -> None:
    super().__init__(message)
    self.message = message
    self.status_code = status_code
    self.status = status
    self.reason = reason


def _parse_error_body(response: httpx.Response) -> Dict[str, Any]:
  try:
    data = response.json()
  except ValueError:
    return {"message": response.text}
  if not isinstance(data, dict):
    return {"message": response.text}
  # The API has been seen to wrap the error object in a one-element list
  error = data.get("error") or {}
  if isinstance(error, list):
    error = error[0] if error else {}
  return error if isinstance(error, dict) else {"message": str(error)}


def _error_reason(error: Dict[str, Any]) -> Optional[str]:
  for detail in error.get("details") or []:
    if isinstance(detail, dict) and detail.get("reason"):
      return detail["reason"]
  return None


class GeminiClient:
  """
  Minimal HTTP client for the Gemini generateContent REST endpoint.

  One prompt in, one text answer out. No streaming or chat history.
  """

  def __init__(
    self,
    api_key: str,
    model: str,
    base_url: str = "https://generativelanguage.googleapis.com/v1beta",
    timeout: float = 60.0,
    http_client: Optional[httpx.Client] = None,
  ) -> None:
    self.api_key = api_key
    self.model = model
    self.base_url = base_url.rstrip("/")
    self.timeout = timeout
    self._http = http_client

  def _build_headers(self) -> Dict[str, str]:
    return {
      "x-goog-api-key": self.api_key,
      "Content-Type": "application/json",
    }

  def _post(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
    if self._http is not None:
      return self._http.post(url, headers=self._build_headers(), json=payload, timeout=self.timeout)
    return httpx.post(url, headers=self._build_headers(), json=payload, timeout=self.timeout)

  def generate(self, prompt: str) -> Dict[str, Any]:
    """
    Send a single-turn generateContent request and return the raw JSON response.
    """
    url = f"{self.base_url}/models/{self.model}:generateContent"
    payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

    logger.debug(
      f"LLM API call: model={self.model}, prompt_chars={len(prompt)}",
      extra={"model": self.model},
    )

    start_time = time.time()
    try:
      response = self._post(url, payload)
      response.raise_for_status()
    except httpx.RequestError as exc:
      duration_ms = int((time.time() - start_time) * 1000)
      logger.error(
        f"LLM API request failed after {duration_ms}ms: {exc}",
        exc_info=True,
        extra={"model": self.model, "duration_ms": duration_ms},
      )
      raise LLMAPIError(f"LLM API request failed: {exc}") from exc
    except httpx.HTTPStatusError as exc:
      duration_ms = int((time.time() - start_time) * 1000)
      error = _parse_error_body(exc.response)
      message = error.get("message") or exc.response.text
      logger.error(
        f"LLM API error {exc.response.status_code} after {duration_ms}ms: {message[:500]}",
        extra={
          "model": self.model,
          "status_code": exc.response.status_code,
          "duration_ms": duration_ms,
        },
      )
      raise LLMAPIError(
        message,
        status_code=exc.response.status_code,
        status=error.get("status"),
        reason=_error_reason(error),
      ) from exc

    duration_ms = int((time.time() - start_time) * 1000)
    logger.info(
      f"LLM API success: {duration_ms}ms",
      extra={"model": self.model, "duration_ms": duration_ms, "status_code": response.status_code},
    )

    try:
      data = response.json()
    except ValueError as exc:
      logger.error(
        f"LLM API returned a non-JSON body: {response.text[:200]}",
        extra={"model": self.model, "status_code": response.status_code},
      )
      raise LLMAPIError("Invalid response from Gemini API", status_code=response.status_code) from exc
    if not isinstance(data, dict):
      raise LLMAPIError("Invalid response from Gemini API", status_code=response.status_code)
    return data

  def generate_text(self, prompt: str) -> str:
    data = self.generate(prompt)
    candidates = data.get("candidates") or []
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
      return ""
    content = candidates[0].get("content")
    if not isinstance(content, dict):
      return ""
    parts: List[Any] = content.get("parts") or []
    if not isinstance(parts, list):
      return ""
    return "".join(
      part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)
    )


def create_llm_client(config: AppConfig) -> Optional[GeminiClient]:
  if not config.gemini_api_key:
    logger.warning("GEMINI_API_KEY not set - Gemini API will not be available")
    return None

  return GeminiClient(
    api_key=config.gemini_api_key,
    model=config.gemini_model,
    base_url=config.gemini_base_url,
    timeout=config.llm_timeout_seconds,
  )
