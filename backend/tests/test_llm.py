import asyncio
from types import SimpleNamespace

import pytest
from google.api_core import exceptions as gexc

from mediproxy import llm
from mediproxy.config import Settings
from mediproxy.errors import EmptyReplyError, MissingCredentialError, ProviderError, TransportError
from mediproxy.prompts import render

NOTE_SPEC = render("generate_clinical_note", {"transcript": "tos"})
RX_SPEC = render("generate_quick_rx", {"transcript": "paracetamol"})


def _response(*texts):
    parts = [SimpleNamespace(text=t) for t in texts]
    return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])


class FakeModel:
    outcome = None
    seen = []

    def __init__(self, name, safety_settings=None):
        self.name = name
        self.safety_settings = safety_settings

    async def generate_content_async(self, contents, generation_config=None):
        FakeModel.seen.append((self.name, contents, generation_config))
        if isinstance(FakeModel.outcome, BaseException):
            raise FakeModel.outcome
        return FakeModel.outcome


@pytest.fixture
def gateway(monkeypatch):
    monkeypatch.setattr(llm.genai, "configure", lambda **kw: None)
    monkeypatch.setattr(llm.genai, "GenerativeModel", FakeModel)
    FakeModel.outcome = None
    FakeModel.seen = []
    return llm.GeminiGateway(Settings(gemini_api_key="test-key", model_name="gemini-test", timeout_seconds=1))


@pytest.mark.asyncio
async def test_missing_key_fails_before_calling(monkeypatch):
    monkeypatch.setattr(llm.genai, "GenerativeModel", FakeModel)
    FakeModel.seen = []
    with pytest.raises(MissingCredentialError):
        await llm.GeminiGateway(Settings(gemini_api_key=None)).invoke(RX_SPEC)
    assert FakeModel.seen == []


@pytest.mark.asyncio
async def test_returns_first_part_text(gateway):
    FakeModel.outcome = _response('{"a": 1}', "ignored")
    assert await gateway.invoke(NOTE_SPEC) == '{"a": 1}'
    name, contents, cfg = FakeModel.seen[0]
    assert name == "gemini-test"
    assert contents == [NOTE_SPEC.text]
    assert cfg.response_mime_type == "application/json"


@pytest.mark.asyncio
async def test_free_text_does_not_request_json(gateway):
    FakeModel.outcome = _response("- Paracetamol 500mg")
    await gateway.invoke(RX_SPEC)
    assert FakeModel.seen[0][2].response_mime_type is None


@pytest.mark.asyncio
@pytest.mark.parametrize("resp", [
    SimpleNamespace(candidates=[]),
    SimpleNamespace(candidates=None),
    SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=[]))]),
    _response(""),
])
async def test_degenerate_response_is_empty_reply(gateway, resp):
    FakeModel.outcome = resp
    with pytest.raises(EmptyReplyError):
        await gateway.invoke(NOTE_SPEC)


@pytest.mark.asyncio
async def test_provider_status_is_carried(gateway):
    FakeModel.outcome = gexc.PermissionDenied("API key not valid")
    with pytest.raises(ProviderError) as exc:
        await gateway.invoke(RX_SPEC)
    assert exc.value.provider_status == 403
    assert exc.value.provider_message == "API key not valid"


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    ConnectionError("connection reset"),
    gexc.DeadlineExceeded("deadline"),
])
async def test_network_failures_are_transport_errors(gateway, error):
    FakeModel.outcome = error
    with pytest.raises(TransportError):
        await gateway.invoke(RX_SPEC)


@pytest.mark.asyncio
async def test_timeout_is_a_transport_error(monkeypatch):
    class SlowModel(FakeModel):
        async def generate_content_async(self, contents, generation_config=None):
            await asyncio.sleep(5)

    monkeypatch.setattr(llm.genai, "configure", lambda **kw: None)
    monkeypatch.setattr(llm.genai, "GenerativeModel", SlowModel)
    gw = llm.GeminiGateway(Settings(gemini_api_key="k", timeout_seconds=0.05))
    with pytest.raises(TransportError):
        await gw.invoke(RX_SPEC)


@pytest.mark.asyncio
async def test_cancellation_propagates(gateway):
    FakeModel.outcome = asyncio.CancelledError()
    with pytest.raises(asyncio.CancelledError):
        await gateway.invoke(RX_SPEC)


def test_list_generation_models_filters_by_method(monkeypatch):
    models = [
        SimpleNamespace(name="models/gemini-2.0-flash", supported_generation_methods=["generateContent"]),
        SimpleNamespace(name="models/text-embedding-004", supported_generation_methods=["embedContent"]),
    ]
    monkeypatch.setattr(llm.genai, "configure", lambda **kw: None)
    monkeypatch.setattr(llm.genai, "list_models", lambda: iter(models))
    assert llm.list_generation_models(Settings(gemini_api_key="k")) == ["models/gemini-2.0-flash"]


def test_list_generation_models_needs_key():
    with pytest.raises(MissingCredentialError):
        llm.list_generation_models(Settings(gemini_api_key=None))
