"""Tests for the language-model and booking HTTP clients."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from salubot.core.business import BookingClient
from salubot.core.errors import BookingFailed, InferenceUnavailable
from salubot.core.llm import (
    AzureExtractionClient,
    OllamaExtractionClient,
    build_extraction_client,
    build_prompt,
)


def _response(status=200, payload=None, text=""):
    res = MagicMock()
    res.status_code = status
    res.ok = 200 <= status < 300
    res.text = text
    if isinstance(payload, Exception):
        res.json.side_effect = payload
    else:
        res.json.return_value = payload
    return res


# ──────────────────────────────────────────────
# Extraction (Ollama)
# ──────────────────────────────────────────────
def test_build_prompt_includes_context_and_utterance():
    prompt = build_prompt("Instrucciones", {"fullName": "Ana", "date": None}, "mañana a las 4")
    assert prompt.startswith("Instrucciones")
    assert 'Datos actuales: {"fullName": "Ana", "date": null}' in prompt
    assert 'Mensaje del usuario: "mañana a las 4"' in prompt


def test_ollama_sends_model_prompt_and_no_stream():
    client = OllamaExtractionClient(url="http://llm/api/generate", model="llama3", timeout=5)
    with patch("salubot.core.llm.requests.post",
               return_value=_response(200, {"response": '{"date": "2025-08-20"}'})) as post:
        text = client.extract("Instrucciones", {}, "mañana")

    assert text == '{"date": "2025-08-20"}'
    _, kwargs = post.call_args
    assert kwargs["json"]["model"] == "llama3"
    assert kwargs["json"]["stream"] is False
    assert "mañana" in kwargs["json"]["prompt"]
    assert kwargs["timeout"] == 5


def test_ollama_error_status_is_unavailable():
    client = OllamaExtractionClient(url="http://llm/api/generate")
    with patch("salubot.core.llm.requests.post", return_value=_response(500)):
        with pytest.raises(InferenceUnavailable):
            client.extract("x", {}, "y")


def test_ollama_connection_error_is_unavailable():
    client = OllamaExtractionClient(url="http://llm/api/generate")
    with patch("salubot.core.llm.requests.post", side_effect=requests.Timeout("lento")):
        with pytest.raises(InferenceUnavailable):
            client.extract("x", {}, "y")


def test_ollama_missing_response_field_is_unavailable():
    client = OllamaExtractionClient(url="http://llm/api/generate")
    with patch("salubot.core.llm.requests.post", return_value=_response(200, {"done": True})):
        with pytest.raises(InferenceUnavailable):
            client.extract("x", {}, "y")


# ──────────────────────────────────────────────
# Extraction (Azure)
# ──────────────────────────────────────────────
def test_azure_returns_message_content():
    llm = MagicMock()
    llm.invoke.return_value = SimpleNamespace(content='{"time": "16:00"}')
    client = AzureExtractionClient(llm=llm)

    assert client.extract("Instrucciones", {}, "4 de la tarde") == '{"time": "16:00"}'
    (messages,), _ = llm.invoke.call_args
    assert "4 de la tarde" in messages[0].content


def test_azure_failure_is_unavailable():
    llm = MagicMock()
    llm.invoke.side_effect = RuntimeError("quota")
    with pytest.raises(InferenceUnavailable):
        AzureExtractionClient(llm=llm).extract("x", {}, "y")


def test_unknown_provider_is_rejected():
    with pytest.raises(ValueError):
        build_extraction_client("gemini")


def test_default_provider_builds_ollama_client():
    assert isinstance(build_extraction_client("ollama"), OllamaExtractionClient)


# ──────────────────────────────────────────────
# Booking
# ──────────────────────────────────────────────
PAYLOAD = {"fullName": "Ana", "date": "2025-08-20", "time": "16:00",
           "specialty": "Cardiología", "phone": "51999888777"}


def test_booking_posts_full_record():
    client = BookingClient(url="http://citas/api/appointments")
    with patch("salubot.core.business.requests.post",
               return_value=_response(201, {"id": 7})) as post:
        assert client.create_appointment(PAYLOAD) == {"id": 7}

    _, kwargs = post.call_args
    assert kwargs["json"] == PAYLOAD


def test_booking_without_body_returns_empty_dict():
    client = BookingClient(url="http://citas/api/appointments")
    with patch("salubot.core.business.requests.post",
               return_value=_response(204, ValueError("sin cuerpo"))):
        assert client.create_appointment(PAYLOAD) == {}


@pytest.mark.parametrize("status", [400, 409, 500])
def test_booking_error_status_fails(status):
    client = BookingClient(url="http://citas/api/appointments")
    with patch("salubot.core.business.requests.post", return_value=_response(status)):
        with pytest.raises(BookingFailed):
            client.create_appointment(PAYLOAD)


def test_booking_transport_error_fails():
    client = BookingClient(url="http://citas/api/appointments")
    with patch("salubot.core.business.requests.post",
               side_effect=requests.ConnectionError("sin red")):
        with pytest.raises(BookingFailed):
            client.create_appointment(PAYLOAD)


def test_booking_without_url_fails():
    client = BookingClient(url="")
    client.url = None
    with pytest.raises(BookingFailed):
        client.create_appointment(PAYLOAD)
