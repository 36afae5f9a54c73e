import asyncio
import logging

import google.generativeai as genai
from google.api_core import exceptions as gexc
from google.generativeai.types import HarmCategory, HarmBlockThreshold, GenerationConfig

from .config import Settings
from .errors import EmptyReplyError, MissingCredentialError, ProviderError, TransportError
from .prompts import PromptSpec

logger = logging.getLogger(__name__)

# Errors raised before the provider could answer with a status of its own
_TRANSPORT_ERRORS = (
    gexc.DeadlineExceeded,
    gexc.RetryError,
    asyncio.TimeoutError,
    ConnectionError,
    OSError,
)


def _extract_text(resp) -> str | None:
    """
    Completion text lives in the first part of the first candidate.
    A blocked or degenerate response has no candidates, no parts, or no text.
    """
    cand = getattr(resp, "candidates", None)
    if not cand:
        return None
    content = getattr(cand[0], "content", None)
    parts = getattr(content, "parts", None) if content is not None else None
    if not parts:
        return None
    return getattr(parts[0], "text", None) or None


def _safety_settings_clinical():
    # Clinical talk (self-harm, drugs, anatomy) must not trip the default filters.
    return {
        HarmCategory.HARM_CATEGORY_HARASSMENT:        HarmBlockThreshold.BLOCK_ONLY_HIGH,
        HarmCategory.HARM_CATEGORY_HATE_SPEECH:       HarmBlockThreshold.BLOCK_ONLY_HIGH,
        HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
        HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
    }


def _gen_config(settings: Settings, as_json: bool) -> GenerationConfig:
    kwargs = dict(
        temperature=settings.temperature,
        max_output_tokens=settings.max_output_tokens,
    )
    if as_json:
        kwargs["response_mime_type"] = "application/json"
    return GenerationConfig(**kwargs)


def list_generation_models(settings: Settings) -> list[str]:
    """Names of the models this key can call generateContent on (startup diagnostics)."""
    if not settings.gemini_api_key:
        raise MissingCredentialError()
    genai.configure(api_key=settings.gemini_api_key)
    return [
        m.name for m in genai.list_models()
        if "generateContent" in getattr(m, "supported_generation_methods", [])
    ]


class GeminiGateway:
    """Single egress point to Gemini. One call per invoke, no retries."""

    def __init__(self, settings: Settings):
        self.settings = settings
        if settings.gemini_api_key:
            genai.configure(api_key=settings.gemini_api_key)

    def _model(self):
        return genai.GenerativeModel(
            self.settings.model_name,
            safety_settings=_safety_settings_clinical(),
        )

    async def invoke(self, spec: PromptSpec) -> str:
        if not self.settings.gemini_api_key:
            raise MissingCredentialError()

        model = self._model()
        cfg = _gen_config(self.settings, spec.expects_structured_output)
        logger.info("Gemini call: model=%s action=%s json=%s",
                    self.settings.model_name, spec.action.value, spec.expects_structured_output)
        try:
            resp = await asyncio.wait_for(
                model.generate_content_async([spec.text], generation_config=cfg),
                timeout=self.settings.timeout_seconds,
            )
        except _TRANSPORT_ERRORS as e:
            logger.warning("Gemini transport failure (%s): %s", type(e).__name__, e)
            raise TransportError(f"Proveedor de IA no disponible, intenta de nuevo. ({type(e).__name__}: {e})") from e
        except gexc.GoogleAPICallError as e:
            logger.warning("Gemini returned status %s: %s", e.code, e.message)
            raise ProviderError(e.code, e.message) from e

        txt = _extract_text(resp)
        if not txt:
            raise EmptyReplyError()
        logger.debug("Gemini raw reply for %s: %s", spec.action.value, txt)
        return txt
