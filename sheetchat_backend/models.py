from __future__ import annotations

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Sender(str, Enum):
  user = "user"
  ai = "ai"


class ChatMessage(BaseModel):
  model_config = ConfigDict(frozen=True)

  id: str
  text: str
  sender: Sender
  timestamp: str


class SheetReference(BaseModel):
  model_config = ConfigDict(frozen=True)

  spreadsheet_id: str
  range_spec: Optional[str] = None


class FetchedSheet(BaseModel):
  """
  Result of one sheet load. ``col_count`` is the width of the first row;
  later rows may be shorter or longer.
  """

  model_config = ConfigDict(frozen=True)

  csv_text: str
  title: str
  row_count: int = 0
  col_count: int = 0


class LoadedSheetInfo(BaseModel):
  name: str
  rows: int
  cols: int

  @classmethod
  def from_fetched(cls, sheet: FetchedSheet) -> "LoadedSheetInfo":
    return cls(name=sheet.title, rows=sheet.row_count, cols=sheet.col_count)


class ActionStatus(str, Enum):
  idle = "idle"
  in_flight = "in_flight"
  succeeded = "succeeded"
  failed = "failed"


class ActionState(BaseModel):
  """
  State of one user action. ``data`` is only set when succeeded and
  ``error`` only when failed.
  """

  model_config = ConfigDict(frozen=True)

  status: ActionStatus = ActionStatus.idle
  generation: int = 0
  data: Optional[Any] = None
  error: Optional[str] = None

  @property
  def in_flight(self) -> bool:
    return self.status == ActionStatus.in_flight

  @classmethod
  def begin(cls, generation: int) -> "ActionState":
    return cls(status=ActionStatus.in_flight, generation=generation)

  def succeed(self, data: Any = None) -> "ActionState":
    return ActionState(status=ActionStatus.succeeded, generation=self.generation, data=data)

  def fail(self, error: str) -> "ActionState":
    return ActionState(status=ActionStatus.failed, generation=self.generation, error=error)


class ConversationSnapshot(BaseModel):
  messages: List[ChatMessage]
  load: ActionState
  ask: ActionState
  sheet: Optional[LoadedSheetInfo] = None
  banners: List[str] = Field(default_factory=list)


# ============================================================================
# API request / response models
# ============================================================================

class LoadSheetRequest(BaseModel):
  url: str
  range_spec: Optional[str] = None


class AskRequest(BaseModel):
  question: str

  @field_validator("question")
  @classmethod
  def validate_question(cls, v: str) -> str:
    if not v or not v.strip():
      raise ValueError("Question must not be empty")
    return v


class AskResponse(BaseModel):
  messages: List[ChatMessage]
  conversation: ConversationSnapshot


class SessionResponse(BaseModel):
  sessionId: str
  conversation: ConversationSnapshot


class ConfigStatus(BaseModel):
  sheets_enabled: bool
  analyzer_enabled: bool
  model: str
  banners: List[str]
