from __future__ import annotations

import time
from typing import Any, Callable, Dict, List, Optional

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .csv_export import rows_to_csv
from .errors import MetadataFetchError, MissingCredential, ValueFetchError
from .logging_config import get_logger
from .models import FetchedSheet
from .utils import parse_sheet_url, sheet_title_from_range

logger = get_logger(__name__)

METADATA_FIELDS = "properties.title,sheets.properties.title"
EMPTY_SHEET_TITLE = "Sheet"
FALLBACK_SHEET_TITLE = "Loaded Sheet"


def build_sheets_service(api_key: str) -> Any:
  """Sheets v4 service authenticated with a plain API key (public sheets only)."""
  return build("sheets", "v4", developerKey=api_key, cache_discovery=False)


def _http_error_details(exc: HttpError) -> tuple[Optional[int], str]:
  status = getattr(exc.resp, "status", None)
  try:
    status = int(status) if status is not None else None
  except (TypeError, ValueError):
    status = None
  return status, (exc.reason or "").strip()


class SheetFetcher:
  """
  Reads one range of a Google Sheet and returns it as CSV.

  When no range is given the first sheet's title is used as the range, which
  makes the API return the whole sheet.
  """

  def __init__(self, service_factory: Callable[[str], Any] = build_sheets_service) -> None:
    self._service_factory = service_factory

  # --- Metadata ---

  def get_sheet_titles(self, sheets: Any, spreadsheet_id: str) -> List[str]:
    start_time = time.time()
    try:
      result = sheets.get(spreadsheetId=spreadsheet_id, fields=METADATA_FIELDS).execute()
    except HttpError as exc:
      status, message = _http_error_details(exc)
      logger.error(
        f"Sheet metadata request failed: {status} {message}",
        extra={"spreadsheet_id": spreadsheet_id, "status_code": status},
      )
      raise MetadataFetchError.from_upstream(status, message) from exc
    except (OSError, ValueError, httplib2.HttpLib2Error) as exc:
      logger.error(
        f"Sheet metadata request failed: {exc}",
        exc_info=True,
        extra={"spreadsheet_id": spreadsheet_id},
      )
      raise MetadataFetchError.from_upstream(None, str(exc)) from exc

    duration_ms = int((time.time() - start_time) * 1000)
    titles = [
      (sheet.get("properties") or {}).get("title", "")
      for sheet in (result.get("sheets") or [])
    ]
    logger.info(
      f"Fetched metadata for '{(result.get('properties') or {}).get('title', '')}': {len(titles)} sheet(s)",
      extra={"spreadsheet_id": spreadsheet_id, "duration_ms": duration_ms},
    )
    return titles

  # --- Values ---

  def read_values(self, sheets: Any, spreadsheet_id: str, range_a1: str) -> Dict[str, Any]:
    start_time = time.time()
    try:
      result = sheets.values().get(spreadsheetId=spreadsheet_id, range=range_a1).execute()
    except HttpError as exc:
      status, message = _http_error_details(exc)
      logger.error(
        f"Sheet values request for {range_a1!r} failed: {status} {message}",
        extra={"spreadsheet_id": spreadsheet_id, "status_code": status},
      )
      raise ValueFetchError.from_upstream(range_a1, status, message) from exc
    except (OSError, ValueError, httplib2.HttpLib2Error) as exc:
      logger.error(
        f"Sheet values request for {range_a1!r} failed: {exc}",
        exc_info=True,
        extra={"spreadsheet_id": spreadsheet_id},
      )
      raise ValueFetchError.from_upstream(range_a1, None, str(exc)) from exc

    duration_ms = int((time.time() - start_time) * 1000)
    logger.info(
      f"Fetched values for {range_a1!r}: {len(result.get('values') or [])} row(s)",
      extra={"spreadsheet_id": spreadsheet_id, "duration_ms": duration_ms},
    )
    return result

  # --- Public entry point ---

  def load_sheet(self, url: str, api_key: str, range_spec: Optional[str] = None) -> FetchedSheet:
    reference = parse_sheet_url(url, range_spec)

    if not api_key:
      raise MissingCredential()

    sheets = self._service_factory(api_key).spreadsheets()
    effective_range = reference.range_spec or ""

    if not effective_range:
      titles = self.get_sheet_titles(sheets, reference.spreadsheet_id)
      if not titles:
        raise MetadataFetchError("No sheets found in the spreadsheet.")
      effective_range = titles[0]

    result = self.read_values(sheets, reference.spreadsheet_id, effective_range)
    values = result.get("values") or []
    requested_title = sheet_title_from_range(effective_range)

    if not values:
      return FetchedSheet(
        csv_text="",
        title=requested_title or EMPTY_SHEET_TITLE,
        row_count=0,
        col_count=0,
      )

    title = (
      sheet_title_from_range(result.get("range"))
      or requested_title
      or FALLBACK_SHEET_TITLE
    )
    return FetchedSheet(
      csv_text=rows_to_csv(values),
      title=title,
      row_count=len(values),
      col_count=len(values[0]),
    )
