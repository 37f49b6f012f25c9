from __future__ import annotations

import threading
import uuid
from typing import Callable, Dict, Optional

from .conversation import ConversationState


class SessionStore:
  """
  Simple in-memory session store keyed by sessionId.

  This is process-local: sessions are gone after a restart.
  """

  def __init__(self, factory: Callable[[str], ConversationState]) -> None:
    self._factory = factory
    self._sessions: Dict[str, ConversationState] = {}
    self._lock = threading.Lock()

  def create(self) -> ConversationState:
    return self.get_or_create(str(uuid.uuid4()))

  def get(self, session_id: str) -> Optional[ConversationState]:
    with self._lock:
      return self._sessions.get(session_id)

  def get_or_create(self, session_id: str) -> ConversationState:
    with self._lock:
      state = self._sessions.get(session_id)
      if state is None:
        state = self._factory(session_id)
        self._sessions[session_id] = state
      return state

  def drop(self, session_id: str) -> bool:
    with self._lock:
      return self._sessions.pop(session_id, None) is not None

  def __len__(self) -> int:
    with self._lock:
      return len(self._sessions)
