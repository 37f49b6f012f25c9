from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import List, Optional

from .analyzer import SheetAnalyzer
from .config import AppConfig
from .errors import ActionInProgress, AnalysisError, SheetChatError, SheetLoadError
from .logging_config import get_logger
from .models import (
  ActionState,
  ActionStatus,
  ChatMessage,
  ConversationSnapshot,
  LoadedSheetInfo,
  Sender,
)
from .sheets_client import SheetFetcher

logger = get_logger(__name__)

BLANK_URL_MESSAGE = "Please enter a Google Sheet URL."
SHEETS_KEY_MISSING_MESSAGE = "Cannot load sheet: GOOGLE_SHEETS_API_KEY is missing."
ANALYZER_KEY_MISSING_MESSAGE = "Cannot process request: GEMINI_API_KEY is missing."
NO_SHEET_LOADED_MESSAGE = "No sheet data loaded. Please load a Google Sheet first."
ANALYSIS_FAILED_PREFIX = "Sorry, I encountered an error analyzing the data: "


class ConversationState:
  """
  One user's chat session: the message log, the currently loaded sheet and
  the state of the two actions (loading a sheet, asking a question).

  Each action runs at most once at a time. Network calls happen outside the
  lock, and a load whose generation has been superseded by a newer load or a
  clear is dropped when it completes.
  """

  def __init__(
    self,
    config: AppConfig,
    fetcher: SheetFetcher,
    analyzer: SheetAnalyzer,
    session_id: Optional[str] = None,
  ) -> None:
    self.config = config
    self.session_id = session_id
    self._fetcher = fetcher
    self._analyzer = analyzer
    self._lock = threading.Lock()

    self._messages: List[ChatMessage] = []
    self._csv_text = ""
    self._sheet_info: Optional[LoadedSheetInfo] = None
    self._load = ActionState()
    self._ask = ActionState()
    self._load_generation = 0
    self._ask_generation = 0
    self._last_id_ms = 0

  # --- Read access ---

  @property
  def messages(self) -> List[ChatMessage]:
    with self._lock:
      return list(self._messages)

  @property
  def csv_text(self) -> str:
    return self._csv_text

  @property
  def sheet_info(self) -> Optional[LoadedSheetInfo]:
    return self._sheet_info

  @property
  def load_state(self) -> ActionState:
    return self._load

  @property
  def ask_state(self) -> ActionState:
    return self._ask

  def snapshot(self) -> ConversationSnapshot:
    with self._lock:
      return ConversationSnapshot(
        messages=list(self._messages),
        load=self._load,
        ask=self._ask,
        sheet=self._sheet_info,
        banners=self.config.banners(),
      )

  # --- Messages ---

  def _new_message(self, text: str, sender: Sender, suffix: str) -> ChatMessage:
    # Caller holds the lock. IDs must stay unique even within one millisecond.
    now_ms = max(int(time.time() * 1000), self._last_id_ms + 1)
    self._last_id_ms = now_ms
    return ChatMessage(
      id=f"{now_ms}-{suffix}",
      text=text,
      sender=sender,
      timestamp=datetime.now(timezone.utc).isoformat(),
    )

  # --- Sheet loading ---

  def load_sheet(self, url: str, range_spec: Optional[str] = None) -> ActionState:
    with self._lock:
      if self._load.in_flight:
        raise ActionInProgress("sheet load")

      if not (url or "").strip():
        self._load = ActionState(
          status=ActionStatus.failed, generation=self._load_generation, error=BLANK_URL_MESSAGE
        )
        return self._load

      if not self.config.sheets_enabled:
        self._load = ActionState(
          status=ActionStatus.failed,
          generation=self._load_generation,
          error=SHEETS_KEY_MISSING_MESSAGE,
        )
        return self._load

      self._load_generation += 1
      generation = self._load_generation
      self._load = ActionState.begin(generation)
      self._csv_text = ""
      self._sheet_info = None

    logger.info(
      f"Loading sheet (generation {generation})",
      extra={"session_id": self.session_id},
    )

    try:
      sheet = self._fetcher.load_sheet(url.strip(), self.config.sheets_api_key or "", range_spec)
    except SheetChatError as exc:
      logger.warning(
        f"Sheet load failed: {exc.user_message}",
        extra={"session_id": self.session_id},
      )
      return self._finish_load(generation, error=exc.user_message)
    except Exception:
      logger.error("Unexpected error while loading sheet", exc_info=True, extra={"session_id": self.session_id})
      self._finish_load(generation, error=SheetLoadError.default_message)
      raise

    info = LoadedSheetInfo.from_fetched(sheet)
    return self._finish_load(generation, csv_text=sheet.csv_text, info=info)

  def _finish_load(
    self,
    generation: int,
    csv_text: str = "",
    info: Optional[LoadedSheetInfo] = None,
    error: Optional[str] = None,
  ) -> ActionState:
    with self._lock:
      if generation != self._load_generation:
        logger.info(
          f"Discarding result of superseded sheet load (generation {generation})",
          extra={"session_id": self.session_id},
        )
        return self._load

      if error is not None:
        self._load = self._load.fail(error)
      else:
        self._csv_text = csv_text
        self._sheet_info = info
        self._load = self._load.succeed(info)
      return self._load

  def clear_sheet(self) -> None:
    with self._lock:
      self._load_generation += 1
      self._csv_text = ""
      self._sheet_info = None
      self._load = ActionState(generation=self._load_generation)

  # --- Questions ---

  def ask(self, question: str) -> List[ChatMessage]:
    """
    Append the user's question and exactly one AI reply. Returns the
    appended messages in order.
    """
    if not (question or "").strip():
      return []

    with self._lock:
      if self._ask.in_flight:
        raise ActionInProgress("question")

      user_message = self._new_message(question, Sender.user, "user")

      refusal = None
      if not self._analyzer.configured:
        refusal = ANALYZER_KEY_MISSING_MESSAGE
      elif not self._csv_text.strip():
        refusal = NO_SHEET_LOADED_MESSAGE

      if refusal is not None:
        ai_message = self._new_message(refusal, Sender.ai, "ai-error")
        self._messages.extend([user_message, ai_message])
        self._ask = ActionState(
          status=ActionStatus.failed, generation=self._ask_generation, error=refusal
        )
        return [user_message, ai_message]

      self._messages.append(user_message)
      self._ask_generation += 1
      self._ask = ActionState.begin(self._ask_generation)
      csv_text = self._csv_text

    try:
      answer = self._analyzer.analyze(csv_text, question)
    except AnalysisError as exc:
      logger.warning(
        f"Analysis failed: {exc.user_message}",
        extra={"session_id": self.session_id},
      )
      return [user_message, self._finish_ask(ANALYSIS_FAILED_PREFIX + exc.user_message, failed=True)]
    except Exception:
      logger.error("Unexpected error while analyzing sheet", exc_info=True, extra={"session_id": self.session_id})
      self._finish_ask(ANALYSIS_FAILED_PREFIX + AnalysisError.default_message, failed=True)
      raise

    return [user_message, self._finish_ask(answer, failed=False)]

  def _finish_ask(self, text: str, failed: bool) -> ChatMessage:
    with self._lock:
      message = self._new_message(text, Sender.ai, "ai-error" if failed else "ai")
      self._messages.append(message)
      self._ask = self._ask.fail(text) if failed else self._ask.succeed(text)
      return message
