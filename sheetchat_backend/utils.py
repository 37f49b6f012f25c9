from __future__ import annotations

import re
from typing import Optional

from .errors import InvalidReference
from .models import SheetReference

_SPREADSHEET_ID_RE = re.compile(r"/spreadsheets/d/([a-zA-Z0-9-_]+)")


def extract_spreadsheet_id(url: str) -> str:
  """
  Pull the spreadsheet ID out of a Google Sheets URL.

  Bare IDs are not accepted: the URL must contain ``/spreadsheets/d/<id>``.
  """
  match = _SPREADSHEET_ID_RE.search(url or "")
  if not match:
    raise InvalidReference()
  return match.group(1)


def parse_sheet_url(url: str, range_spec: Optional[str] = None) -> SheetReference:
  range_spec = (range_spec or "").strip() or None
  return SheetReference(spreadsheet_id=extract_spreadsheet_id(url), range_spec=range_spec)


def sheet_title_from_range(range_a1: Optional[str]) -> str:
  """'Sales!A1:C10' -> 'Sales'; a bare title is returned unchanged."""
  if not range_a1:
    return ""
  return range_a1.split("!")[0]
