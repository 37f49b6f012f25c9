from __future__ import annotations

from typing import Optional


class SheetChatError(Exception):
  """
  Base class for every failure that is shown to the end user.

  ``user_message`` is the text placed in the conversation or status region.
  """

  default_message = "An unknown error occurred."

  def __init__(self, message: Optional[str] = None) -> None:
    self.user_message = message or self.default_message
    super().__init__(self.user_message)


# --- Sheet loading ---


class SheetLoadError(SheetChatError):
  default_message = "An unknown error occurred while loading sheet data."


class InvalidReference(SheetLoadError):
  default_message = "Invalid Google Sheet URL. Could not extract Spreadsheet ID."


class MissingCredential(SheetLoadError):
  default_message = "Google Sheets API key is required."


class _UpstreamFetchError(SheetLoadError):
  def __init__(
    self,
    message: str,
    status_code: Optional[int] = None,
    upstream_message: str = "",
  ) -> None:
    self.status_code = status_code
    self.upstream_message = upstream_message
    super().__init__(message)


class MetadataFetchError(_UpstreamFetchError):
  @classmethod
  def from_upstream(cls, status_code: Optional[int], upstream_message: str) -> "MetadataFetchError":
    status = status_code if status_code is not None else "network error"
    message = f"Failed to fetch sheet metadata: {status}. {upstream_message}".strip()
    return cls(message, status_code=status_code, upstream_message=upstream_message)


class ValueFetchError(_UpstreamFetchError):
  @classmethod
  def from_upstream(
    cls,
    range_spec: str,
    status_code: Optional[int],
    upstream_message: str,
  ) -> "ValueFetchError":
    status = status_code if status_code is not None else "network error"
    message = (
      f'Failed to fetch sheet data for range "{range_spec}": {status}. {upstream_message}'
    ).strip()
    return cls(message, status_code=status_code, upstream_message=upstream_message)


# --- AI analysis ---


class AnalysisError(SheetChatError):
  default_message = "An error occurred while communicating with the AI. Please try again later."


class ClientNotConfigured(AnalysisError):
  default_message = "Gemini API client is not initialized. Check GEMINI_API_KEY configuration."


class InvalidCredential(AnalysisError):
  default_message = "Invalid API Key. Please check your GEMINI_API_KEY environment variable."


class QuotaExceeded(AnalysisError):
  default_message = (
    "API quota exceeded. Please check your Google Cloud project quotas for the Gemini API."
  )


class CommunicationError(AnalysisError):
  pass


# --- Action gating ---


class ActionInProgress(SheetChatError):
  def __init__(self, action: str) -> None:
    self.action = action
    super().__init__(f"A {action} request is already in progress. Please wait for it to finish.")
