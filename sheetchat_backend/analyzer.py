from __future__ import annotations

from typing import Optional, Protocol

from .errors import (
  AnalysisError,
  ClientNotConfigured,
  CommunicationError,
  InvalidCredential,
  QuotaExceeded,
)
from .llm import LLMAPIError
from .logging_config import get_logger

logger = get_logger(__name__)

NO_DATA_ANSWER = "No data provided. Please load your sheet data first."
EMPTY_RESPONSE_ANSWER = (
  "I received an empty response. I might not have enough information or the query was unclear."
)


class TextGenerator(Protocol):
  model: str

  def generate_text(self, prompt: str) -> str:  # pragma: no cover - interface
    ...


# --- Prompt templates ---


class PROMPTS:
  class SHEET_ANALYSIS:
    template: str = (
      "You are an expert business analyst and conversational AI. Your primary task is to "
      "analyze the provided CSV data (representing a Google Sheet) and answer the user's "
      "question based *solely* on this data.\n\n"
      "**Instructions:**\n"
      "1. **Data Source:** The data you will analyze is provided below in CSV format.\n"
      "2. **Accuracy:** Base your answers strictly on the information present in the CSV "
      "data. Do not make assumptions or use external knowledge.\n"
      "3. **Messy Data Handling:** The CSV data might be inconsistent: missing values, "
      "unusual formatting, or unclear column headers. Do your best to interpret it logically.\n"
      "4. **Clarity:** If the data is insufficient to answer the question or is too ambiguous, "
      "clearly state that you cannot answer based on the provided information.\n"
      "5. **Conciseness:** Provide clear, concise, and professional answers.\n"
      "6. **No Fabrication:** Do not invent data or information not present in the CSV.\n\n"
      "**Provided CSV Data:**\n"
      "```csv\n"
      "{csv_text}\n"
      "```\n\n"
      "**User's Question:**\n"
      "\"{question}\"\n\n"
      "**Your Analysis and Answer:**\n"
    )


def build_analysis_prompt(csv_text: str, question: str) -> str:
  return PROMPTS.SHEET_ANALYSIS.template.format(csv_text=csv_text, question=question)


def classify_llm_error(exc: Exception) -> AnalysisError:
  """
  Map a backend failure onto the user-facing error taxonomy.

  Structured fields from the Google error body are checked first. Matching on
  the message text is kept only for errors that carry no structured fields.
  """
  reason = getattr(exc, "reason", None)
  status = getattr(exc, "status", None)
  status_code = getattr(exc, "status_code", None)

  if reason == "API_KEY_INVALID":
    return InvalidCredential()
  if status == "RESOURCE_EXHAUSTED" or status_code == 429:
    return QuotaExceeded()

  message = str(exc)
  if "API key not valid" in message:
    return InvalidCredential()
  if "quota" in message:
    return QuotaExceeded()
  return CommunicationError()


class SheetAnalyzer:
  """
  Answers a question about CSV data with one stateless model call.

  Built once at startup. Without a client every call fails fast with
  ClientNotConfigured.
  """

  def __init__(self, client: Optional[TextGenerator]) -> None:
    self._client = client

  @property
  def configured(self) -> bool:
    return self._client is not None

  def analyze(self, csv_text: str, question: str) -> str:
    if self._client is None:
      raise ClientNotConfigured()

    if not csv_text.strip():
      return NO_DATA_ANSWER

    prompt = build_analysis_prompt(csv_text, question)
    try:
      text = self._client.generate_text(prompt)
    except LLMAPIError as exc:
      logger.error(
        f"Error calling Gemini API: {exc}",
        extra={"model": self._client.model, "status_code": exc.status_code},
      )
      raise classify_llm_error(exc) from exc

    if not text or not text.strip():
      return EMPTY_RESPONSE_ANSWER
    return text.strip()
