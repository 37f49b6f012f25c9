from __future__ import annotations

from typing import Optional

from .analyzer import SheetAnalyzer
from .config import AppConfig, load_config
from .conversation import ConversationState
from .llm import create_llm_client
from .logging_config import get_logger
from .memory import SessionStore
from .sheets_client import SheetFetcher

logger = get_logger(__name__)


class SheetChatService:
  """
  Owns the shared, startup-built pieces (config, sheet fetcher, analyzer)
  and hands out one ConversationState per session.
  """

  def __init__(
    self,
    config: Optional[AppConfig] = None,
    fetcher: Optional[SheetFetcher] = None,
    analyzer: Optional[SheetAnalyzer] = None,
    store: Optional[SessionStore] = None,
  ) -> None:
    self.config = config if config is not None else load_config()
    self.fetcher = fetcher if fetcher is not None else SheetFetcher()
    if analyzer is None:
      analyzer = SheetAnalyzer(create_llm_client(self.config))
    self.analyzer = analyzer
    self.store = store if store is not None else SessionStore(self._new_conversation)

    logger.info(
      "Sheet chat service ready "
      f"(sheets={'on' if self.config.sheets_enabled else 'off'}, "
      f"analyzer={'on' if self.analyzer.configured else 'off'}, model={self.config.gemini_model})"
    )

  def _new_conversation(self, session_id: str) -> ConversationState:
    return ConversationState(
      config=self.config,
      fetcher=self.fetcher,
      analyzer=self.analyzer,
      session_id=session_id,
    )

  def create_session(self) -> ConversationState:
    return self.store.create()

  def get_session(self, session_id: str) -> Optional[ConversationState]:
    return self.store.get(session_id)
