"""
Tests for the sheet analyzer and the Gemini HTTP client behind it.
"""
import json

import httpx
import pytest

from conftest import FakeGenerator
from sheetchat_backend.analyzer import (
    EMPTY_RESPONSE_ANSWER,
    NO_DATA_ANSWER,
    SheetAnalyzer,
    build_analysis_prompt,
    classify_llm_error,
)
from sheetchat_backend.config import AppConfig
from sheetchat_backend.errors import (
    ClientNotConfigured,
    CommunicationError,
    InvalidCredential,
    QuotaExceeded,
)
from sheetchat_backend.llm import GeminiClient, LLMAPIError, create_llm_client

CSV = "Name,Qty\nPens,10"


# --- Analyzer ---


def test_unconfigured_client_fails_every_call():
    analyzer = SheetAnalyzer(None)
    assert analyzer.configured is False
    for csv_text in (CSV, ""):
        with pytest.raises(ClientNotConfigured):
            analyzer.analyze(csv_text, "How many pens?")


def test_blank_csv_short_circuits(generator, analyzer):
    assert analyzer.analyze("  \n ", "How many pens?") == NO_DATA_ANSWER
    assert generator.prompts == []


def test_prompt_embeds_data_and_question(generator, analyzer):
    analyzer.analyze(CSV, "How many {pens}?")

    assert len(generator.prompts) == 1
    prompt = generator.prompts[0]
    assert "```csv\nName,Qty\nPens,10\n```" in prompt
    assert '"How many {pens}?"' in prompt
    assert "solely" in prompt
    assert "Do not invent data" in prompt


def test_answer_is_trimmed():
    analyzer = SheetAnalyzer(FakeGenerator(answer="\n  There are 10 pens.  \n"))
    assert analyzer.analyze(CSV, "q") == "There are 10 pens."


def test_empty_answer_returns_advisory():
    analyzer = SheetAnalyzer(FakeGenerator(answer="   "))
    assert analyzer.analyze(CSV, "q") == EMPTY_RESPONSE_ANSWER


@pytest.mark.parametrize(
    "error, expected",
    [
        (LLMAPIError("API key not valid. Please pass a valid API key.", status_code=400), InvalidCredential),
        (LLMAPIError("bad key", status_code=400, reason="API_KEY_INVALID"), InvalidCredential),
        (LLMAPIError("You exceeded your current quota", status_code=429), QuotaExceeded),
        (LLMAPIError("slow down", status_code=429, status="RESOURCE_EXHAUSTED"), QuotaExceeded),
        (LLMAPIError("quota exhausted for project"), QuotaExceeded),
        (LLMAPIError("Internal error", status_code=500), CommunicationError),
        (LLMAPIError("LLM API request failed: connection reset"), CommunicationError),
    ],
)
def test_error_classification(error, expected):
    assert isinstance(classify_llm_error(error), expected)
    analyzer = SheetAnalyzer(FakeGenerator(error=error))
    with pytest.raises(expected):
        analyzer.analyze(CSV, "q")


def test_build_prompt_keeps_braces_in_data():
    prompt = build_analysis_prompt("a,{b}", "what is {b}?")
    assert "a,{b}" in prompt
    assert "what is {b}?" in prompt


# --- Gemini client ---


def _client(handler) -> GeminiClient:
    return GeminiClient(
        api_key="gemini-key",
        model="gemini-test",
        base_url="https://gemini.test/v1beta/",
        http_client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_generate_text_request_shape():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("x-goog-api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"candidates": [{"content": {"parts": [{"text": "Ten "}, {"text": "pens"}]}}]},
        )

    assert _client(handler).generate_text("prompt text") == "Ten pens"
    assert seen["url"] == "https://gemini.test/v1beta/models/gemini-test:generateContent"
    assert seen["key"] == "gemini-key"
    assert seen["body"]["contents"][0]["parts"][0]["text"] == "prompt text"


def test_generate_text_without_candidates_is_empty():
    client = _client(lambda request: httpx.Response(200, json={"promptFeedback": {}}))
    assert client.generate_text("p") == ""


def test_http_error_keeps_structured_fields():
    body = {
        "error": {
            "code": 400,
            "message": "API key not valid. Please pass a valid API key.",
            "status": "INVALID_ARGUMENT",
            "details": [
                {"@type": "type.googleapis.com/google.rpc.ErrorInfo", "reason": "API_KEY_INVALID"}
            ],
        }
    }
    client = _client(lambda request: httpx.Response(400, json=body))

    with pytest.raises(LLMAPIError) as excinfo:
        client.generate_text("p")

    assert excinfo.value.status_code == 400
    assert excinfo.value.status == "INVALID_ARGUMENT"
    assert excinfo.value.reason == "API_KEY_INVALID"
    assert "API key not valid" in str(excinfo.value)


def test_quota_error_through_analyzer():
    body = {"error": {"code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}}
    analyzer = SheetAnalyzer(_client(lambda request: httpx.Response(429, json=body)))
    with pytest.raises(QuotaExceeded):
        analyzer.analyze(CSV, "q")


def test_transport_error_is_communication_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    analyzer = SheetAnalyzer(_client(handler))
    with pytest.raises(CommunicationError):
        analyzer.analyze(CSV, "q")


def test_non_json_error_body():
    client = _client(lambda request: httpx.Response(502, text="Bad Gateway"))
    with pytest.raises(LLMAPIError) as excinfo:
        client.generate_text("p")
    assert excinfo.value.status_code == 502
    assert str(excinfo.value) == "Bad Gateway"


def test_create_llm_client_requires_key():
    assert create_llm_client(AppConfig()) is None

    client = create_llm_client(AppConfig(gemini_api_key="k", gemini_model="m"))
    assert isinstance(client, GeminiClient)
    assert client.model == "m"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>proxy</html>"),
        httpx.Response(200, json=["unexpected"]),
    ],
)
def test_malformed_success_body_is_communication_error(response):
    analyzer = SheetAnalyzer(_client(lambda request: response))
    with pytest.raises(CommunicationError):
        analyzer.analyze(CSV, "q")


@pytest.mark.parametrize(
    "body",
    [
        {"candidates": "nope"},
        {"candidates": ["nope"]},
        {"candidates": [{"content": "nope"}]},
        {"candidates": [{"content": {"parts": "nope"}}]},
        {"candidates": [{"content": {"parts": ["nope", {"text": 3}, {"text": "ok"}]}}]},
    ],
)
def test_odd_candidate_shapes_do_not_crash(body):
    text = _client(lambda request: httpx.Response(200, json=body)).generate_text("p")
    assert text in ("", "ok")
