"""Error taxonomy for the proxy.

Every stage raises one of these and lets it propagate; only the dispatcher
turns them into the `{"error": ...}` envelope, using `status_code` as the
HTTP status and `kind` so operators can tell the failures apart.
"""


class ProxyError(Exception):
    status_code = 500
    public_message = "Error interno del proxy de IA."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message

    @property
    def kind(self) -> str:
        return type(self).__name__


class UnknownActionError(ProxyError):
    status_code = 400

    def __init__(self, action):
        self.action = action
        super().__init__(f"Acción desconocida: {action!r}")


class InvalidPayloadError(ProxyError):
    status_code = 400

    def __init__(self, action: str, field: str):
        self.action = action
        self.field = field
        super().__init__(f"Falta el campo '{field}' en el payload de {action}")


class MissingCredentialError(ProxyError):
    status_code = 500
    public_message = "La llave GEMINI_API_KEY no está configurada en el servidor."


class TransportError(ProxyError):
    status_code = 503
    public_message = "Proveedor de IA no disponible, intenta de nuevo."


class ProviderError(ProxyError):
    status_code = 502

    def __init__(self, provider_status: int | None, provider_message: str):
        self.provider_status = provider_status
        self.provider_message = provider_message
        super().__init__(
            f"Proveedor de IA no disponible, intenta de nuevo. "
            f"(status={provider_status}: {provider_message})"
        )


class EmptyReplyError(ProxyError):
    status_code = 502
    public_message = "Respuesta vacía del modelo (posible bloqueo de seguridad)."


class ContractViolationError(ProxyError):
    status_code = 502

    def __init__(self, raw_text: str, reason: str = ""):
        self.raw_text = raw_text
        self.reason = reason
        detail = f" [{reason}]" if reason else ""
        super().__init__(
            f"Respuesta mal formada del modelo, reintenta.{detail} Texto recibido: {raw_text!r}"
        )
