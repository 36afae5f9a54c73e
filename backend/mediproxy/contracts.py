import json
import logging
from typing import Union

from pydantic import BaseModel, ValidationError

from .errors import ContractViolationError, EmptyReplyError
from .prompts import PromptSpec

logger = logging.getLogger(__name__)

ParsedResult = Union[str, BaseModel]


def strip_code_fences(text: str) -> str:
    """Drop every ```json and bare ``` marker, wherever it appears, then trim."""
    return text.replace("```json", "").replace("```", "").strip()


def validate(raw_text: str, spec: PromptSpec) -> ParsedResult:
    if not spec.expects_structured_output:
        text = (raw_text or "").strip()
        if not text:
            raise EmptyReplyError()
        return text

    clean = strip_code_fences(raw_text or "")
    try:
        data = json.loads(clean)
    except json.JSONDecodeError as e:
        logger.warning("Reply for %s is not JSON: %s", spec.action.value, e)
        raise ContractViolationError(raw_text, f"JSON inválido: {e.msg}") from e

    try:
        return spec.contract.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors())
        logger.warning("Reply for %s violates %s: %s", spec.action.value, spec.contract.__name__, fields)
        raise ContractViolationError(raw_text, f"campos inválidos: {fields}") from e
