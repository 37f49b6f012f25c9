"""Pytest configuration and shared fixtures."""
import json
from typing import Any, Dict, List, Optional

import httplib2
import pytest
from googleapiclient.errors import HttpError

from sheetchat_backend.analyzer import SheetAnalyzer
from sheetchat_backend.config import AppConfig
from sheetchat_backend.conversation import ConversationState
from sheetchat_backend.sheets_client import SheetFetcher

SHEET_URL = "https://docs.google.com/spreadsheets/d/ABC123/edit#gid=0"


def make_http_error(status: int, message: str) -> HttpError:
    """Build the error googleapiclient raises for a non-2xx response."""
    resp = httplib2.Response({"status": status})
    content = json.dumps({"error": {"code": status, "message": message}}).encode("utf-8")
    return HttpError(resp, content)


class _Request:
    def __init__(self, result: Any = None, error: Optional[Exception] = None):
        self._result = result
        self._error = error

    def execute(self):
        if self._error is not None:
            raise self._error
        return self._result


class FakeSheetsService:
    """
    Stands in for googleapiclient's Sheets v4 resource and records calls.
    """

    def __init__(
        self,
        metadata: Optional[Dict[str, Any]] = None,
        values: Optional[Dict[str, Any]] = None,
        metadata_error: Optional[Exception] = None,
        values_error: Optional[Exception] = None,
    ):
        self.metadata = metadata if metadata is not None else {
            "properties": {"title": "Quarterly"},
            "sheets": [{"properties": {"title": "Sales"}}, {"properties": {"title": "Costs"}}],
        }
        self.values_response = values if values is not None else {
            "range": "Sales!A1:B2",
            "values": [["Name", "Qty"], ["Pens", "10"]],
        }
        self.metadata_error = metadata_error
        self.values_error = values_error
        self.metadata_calls: List[Dict[str, Any]] = []
        self.values_calls: List[Dict[str, Any]] = []
        self.api_keys: List[str] = []

    # service.spreadsheets()
    def spreadsheets(self):
        return self

    # spreadsheets().get(...)
    def get(self, **kwargs):
        self.metadata_calls.append(kwargs)
        return _Request(self.metadata, self.metadata_error)

    # spreadsheets().values()
    def values(self):
        return _ValuesResource(self)

    def factory(self, api_key: str):
        self.api_keys.append(api_key)
        return self


class _ValuesResource:
    def __init__(self, service: FakeSheetsService):
        self._service = service

    def get(self, **kwargs):
        self._service.values_calls.append(kwargs)
        return _Request(self._service.values_response, self._service.values_error)


class FakeGenerator:
    """Text generator that returns canned answers and counts calls."""

    model = "fake-model"

    def __init__(self, answer: str = "Pens: 10", error: Optional[Exception] = None):
        self.answer = answer
        self.error = error
        self.prompts: List[str] = []

    def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer


@pytest.fixture
def config():
    return AppConfig(sheets_api_key="sheets-key", gemini_api_key="gemini-key")


@pytest.fixture
def sheets_service():
    return FakeSheetsService()


@pytest.fixture
def fetcher(sheets_service):
    return SheetFetcher(service_factory=sheets_service.factory)


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def analyzer(generator):
    return SheetAnalyzer(generator)


@pytest.fixture
def conversation(config, fetcher, analyzer):
    return ConversationState(config=config, fetcher=fetcher, analyzer=analyzer, session_id="test")
