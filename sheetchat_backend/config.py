from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

from .logging_config import get_logger

logger = get_logger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

GEMINI_MISSING_BANNER = "Gemini API Key is missing. AI chat functionality is disabled."
SHEETS_MISSING_BANNER = "Google Sheets API Key is missing. Sheet loading is disabled."


def _first_env(*names: str) -> Optional[str]:
  for name in names:
    value = os.getenv(name)
    if value and value.strip():
      return value.strip()
  return None


class AppConfig(BaseModel):
  """
  Settings resolved once at startup and handed to the services that need
  them. A missing credential disables its feature instead of failing.
  """

  sheets_api_key: Optional[str] = None
  gemini_api_key: Optional[str] = None
  gemini_model: str = DEFAULT_GEMINI_MODEL
  gemini_base_url: str = DEFAULT_GEMINI_BASE_URL
  llm_timeout_seconds: float = 60.0

  @property
  def sheets_enabled(self) -> bool:
    return bool(self.sheets_api_key)

  @property
  def analyzer_enabled(self) -> bool:
    return bool(self.gemini_api_key)

  def missing_credentials(self) -> List[str]:
    missing = []
    if not self.gemini_api_key:
      missing.append("GEMINI_API_KEY")
    if not self.sheets_api_key:
      missing.append("GOOGLE_SHEETS_API_KEY")
    return missing

  def banners(self) -> List[str]:
    banners = []
    if not self.analyzer_enabled:
      banners.append(GEMINI_MISSING_BANNER)
    if not self.sheets_enabled:
      banners.append(SHEETS_MISSING_BANNER)
    return banners


def load_config(env_file: Optional[Path] = None) -> AppConfig:
  """
  Build the application config from the environment.

  Values already exported in the process environment win over the .env file.
  """
  load_dotenv(env_file or PROJECT_ROOT / ".env", override=False)

  timeout_raw = os.getenv("LLM_TIMEOUT_SECONDS", "60")
  try:
    timeout = float(timeout_raw)
  except ValueError:
    logger.warning(f"Ignoring invalid LLM_TIMEOUT_SECONDS={timeout_raw!r}, using 60")
    timeout = 60.0

  config = AppConfig(
    sheets_api_key=_first_env("GOOGLE_SHEETS_API_KEY", "VITE_GOOGLE_SHEETS_API_KEY"),
    gemini_api_key=_first_env("GEMINI_API_KEY", "VITE_GEMINI_API_KEY"),
    gemini_model=_first_env("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
    gemini_base_url=_first_env("GEMINI_BASE_URL") or DEFAULT_GEMINI_BASE_URL,
    llm_timeout_seconds=timeout,
  )

  for name in config.missing_credentials():
    logger.warning(f"{name} is not set - the feature that needs it is disabled")

  return config
