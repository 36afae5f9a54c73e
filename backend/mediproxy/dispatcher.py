import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

from pydantic import BaseModel

from . import contracts, prompts
from .errors import ProxyError
from .prompts import PromptSpec

logger = logging.getLogger(__name__)


class Gateway(Protocol):
    async def invoke(self, spec: PromptSpec) -> str: ...


@dataclass(frozen=True)
class DispatchResult:
    status_code: int
    body: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code < 400


def error_envelope(err: ProxyError) -> DispatchResult:
    return DispatchResult(err.status_code, {"error": err.message, "kind": err.kind})


class Dispatcher:
    """render -> invoke -> validate, and the one place errors become envelopes."""

    def __init__(self, gateway: Gateway):
        self.gateway = gateway

    async def run(self, action: Any, payload: Optional[Mapping[str, Any]] = None) -> contracts.ParsedResult:
        spec = prompts.render(action, payload)
        raw = await self.gateway.invoke(spec)
        return contracts.validate(raw, spec)

    async def handle(self, action: Any, payload: Optional[Mapping[str, Any]] = None) -> DispatchResult:
        try:
            parsed = await self.run(action, payload)
        except ProxyError as e:
            logger.error("Action %r failed with %s: %s", action, e.kind, e.message)
            return error_envelope(e)

        logger.info("Action %r served", action)
        if isinstance(parsed, BaseModel):
            parsed = parsed.model_dump(mode="json")
        return DispatchResult(200, {"data": parsed})
