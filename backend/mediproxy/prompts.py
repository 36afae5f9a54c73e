"""Prompt template registry.

Each action maps to one immutable `PromptTemplate`: a build function that
turns the caller's payload into prompt text, and the pydantic contract the
reply must satisfy (None means free text). Payload values are interpolated
as plain text; nothing in them is interpreted by the proxy.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Type

from pydantic import BaseModel

from .errors import InvalidPayloadError, UnknownActionError
from .models import AgentCommand, AssistantCommand, StructuredNote


class Action(str, Enum):
    GENERATE_CLINICAL_NOTE = "generate_clinical_note"
    GENERATE_QUICK_RX = "generate_quick_rx"
    CHAT_CONTEXT = "chat_context"
    VOICE_COMMAND = "voice_command"
    AGENT_COMMAND = "agent_command"


@dataclass(frozen=True)
class PromptSpec:
    action: Action
    text: str
    expects_structured_output: bool
    contract: Optional[Type[BaseModel]] = None


@dataclass(frozen=True)
class PromptTemplate:
    build: Callable[[Mapping[str, Any]], str]
    contract: Optional[Type[BaseModel]] = None

    @property
    def structured(self) -> bool:
        return self.contract is not None


DEFAULT_SPECIALTY = "Medicina General"

SPECIALTY_PROFILES = MappingProxyType({
    "Cardiología": {
        "role": "Cardiólogo Intervencionista",
        "focus": "Hemodinamia, ritmo, perfusión.",
        "bias": "Prioriza estabilidad hemodinámica.",
    },
    "Medicina General": {
        "role": "Médico de Familia Experto",
        "focus": "Visión integral y triaje.",
        "bias": "Prevención y detección temprana.",
    },
    "Psiquiatría": {
        "role": "Psiquiatra Clínico",
        "focus": "Fenomenología, riesgo suicida, psicofarmacología.",
        "bias": "Evaluación rigurosa del estado mental y riesgos agudos.",
    },
})

_WEEKDAYS_ES = ("lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo")
_MONTHS_ES = ("enero", "febrero", "marzo", "abril", "mayo", "junio", "julio",
              "agosto", "septiembre", "octubre", "noviembre", "diciembre")


def specialty_profile(specialty: str) -> dict:
    return SPECIALTY_PROFILES.get(specialty) or {
        "role": f"Especialista en {specialty}",
        "focus": "Documentación clínica precisa.",
        "bias": "Criterio clínico estándar.",
    }


def _required(payload: Mapping[str, Any], field: str, action: Action) -> str:
    value = payload.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidPayloadError(action.value, field)
    return str(value)


def _optional(payload: Mapping[str, Any], field: str, default: str) -> str:
    value = payload.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    return str(value)


def _reference_time(payload: Mapping[str, Any], action: Action) -> datetime:
    raw = payload.get("current_datetime")
    if not raw:
        return datetime.now().replace(second=0, microsecond=0)
    text = str(raw)
    # toISOString() ends in "Z"; fromisoformat only accepts it from 3.11 on
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise InvalidPayloadError(action.value, "current_datetime") from None


def describe_date(moment: datetime) -> str:
    """'viernes 16 de octubre de 2026, 10:30' regardless of the host locale."""
    return (f"{_WEEKDAYS_ES[moment.weekday()]} {moment.day} de {_MONTHS_ES[moment.month - 1]} "
            f"de {moment.year}, {moment:%H:%M}")


# --- templates ---

CLINICAL_NOTE_PROMPT = """\
ROL: MediScribe AI, asistente de documentación clínica.
ESPECIALIDAD: {role}.
ENFOQUE: {focus}
CRITERIO: {bias}

ANALIZA:
Transcripción: "{transcript}"
Historial: "{history}"

GENERA JSON EXACTO (sin texto adicional):
{{
  "clinicalNote": "Nota técnica completa.",
  "soapData": {{ "subjective": "S", "objective": "O", "analysis": "A", "plan": "P" }},
  "clinical_suggestions": ["Sugerencia 1", "Sugerencia 2"],
  "prescriptions": [
    {{ "drug": "string", "dose": "string", "frequency": "string", "duration": "string", "notes": "string" }}
  ],
  "patientInstructions": "Instrucciones para el paciente.",
  "risk_analysis": {{ "level": "Low" | "Medium" | "High", "reason": "Razón." }},
  "actionItems": {{ "next_appointment": null, "urgent_referral": false, "lab_tests_required": [] }}
}}

REGLAS:
- Todos los campos de texto son obligatorios; usa "" si no hay información.
- "risk_analysis.level" debe ser exactamente "Low", "Medium" o "High".
- "next_appointment" es null o una fecha ISO-8601.
"""

QUICK_RX_PROMPT = """\
ROL: Eres un Médico experto en {specialty}.
TAREA: Redacta ÚNICAMENTE el cuerpo de la receta médica basado en el dictado.

REGLAS ESTRICTAS:
1. NO incluyas saludos, introducciones ("Aquí tienes..."), ni despedidas.
2. NO uses placeholders como "[Nombre del Médico]" o "[Fecha]". El sistema ya los tiene.
3. Enfócate SOLO en: Medicamento, Concentración, Forma Farmacéutica e Indicaciones (Dosis, Frecuencia, Duración).
4. Usa un formato de lista claro y profesional, listo para imprimir.

DICTADO: "{transcript}"

SALIDA ESPERADA (Ejemplo):
- Paracetamol 500mg tabletas. Tomar 1 cada 8 horas por 3 días en caso de dolor.
- Ibuprofeno 400mg cápsulas. Tomar 1 cada 12 horas con alimentos.
"""

CHAT_PROMPT = """\
ROL: Asistente clínico que responde dudas del médico tratante.
CONTEXTO CLÍNICO: {context}
{history}
PREGUNTA USUARIO: {message}
"""

VOICE_COMMAND_PROMPT = """\
ACTÚA COMO: Asistente personal de una clínica médica.
FECHA Y HORA ACTUAL: {date_text} (ISO Base: {date_iso})

TU MISIÓN:
Analiza el siguiente comando de voz y extrae una acción estructurada.

COMANDO DE VOZ: "{transcript}"

ACCIONES PERMITIDAS:
1. 'create_appointment': Si el usuario quiere agendar, citar, ver o programar a un paciente.
   - Calcula la fecha exacta basada en "hoy", "mañana", "el viernes", etc. Un día de la
     semana se refiere a su próxima ocurrencia a partir de la fecha actual.
   - Si no especifica duración, asume 30 minutos.
   - Si no especifica hora, asume las 09:00 del día calculado.

2. 'unknown': Si el comando no tiene sentido o no es sobre agenda.

FORMATO DE SALIDA (JSON):
{{
  "action": "create_appointment" | "unknown",
  "data": {{
    "patientName": "Nombre del paciente (o 'Sin nombre' si no se menciona)",
    "title": "Título de la cita (Ej: Consulta, Cirugía, Comida)",
    "start_time": "YYYY-MM-DDTHH:mm:00 (Formato ISO estricto local, sin zona horaria)",
    "duration_minutes": 30,
    "notes": "Cualquier detalle extra mencionado"
  }},
  "message": "Una confirmación breve y natural para el doctor."
}}
"""

AGENT_COMMAND_PROMPT = """\
ACTÚA COMO: Asistente Clínico y Router de Intenciones.
FECHA ACTUAL: {date_text} (ISO: {date_iso})

TU TAREA: Analizar el comando de voz y clasificarlo en una de 4 categorías.

1. "CREATE_APPOINTMENT": El usuario quiere agendar.
   - Extrae: patientName, title, start_time (ISO local), duration_minutes.
   - Regla: Si no dice hora, usa 09:00. Si no dice duración, usa 30 minutos. Si dice "mañana", suma 1 día.

2. "MEDICAL_QUERY": Pregunta clínica, dosis, interacción o duda médica.
   - Extrae: query (la pregunta limpia).
   - Genera: "answer" (una respuesta BREVE y profesional de máximo 2 oraciones).

3. "NAVIGATION": Quiere ir a una pantalla.
   - Extrae: destination (dashboard | agenda | patients | settings).

4. "PATIENT_SEARCH": Quiere buscar datos de un paciente.
   - Extrae: patientName.

INPUT DEL MÉDICO: "{transcript}"

RESPONDE SOLO JSON:
{{
  "intent": "CREATE_APPOINTMENT" | "MEDICAL_QUERY" | "NAVIGATION" | "PATIENT_SEARCH" | "UNKNOWN",
  "data": {{ }},
  "confidence": 0.9,
  "message": "Texto corto confirmando la acción o la respuesta médica"
}}
"""


def _clinical_note(payload: Mapping[str, Any]) -> str:
    profile = specialty_profile(_optional(payload, "specialty", DEFAULT_SPECIALTY))
    return CLINICAL_NOTE_PROMPT.format(
        transcript=_required(payload, "transcript", Action.GENERATE_CLINICAL_NOTE).strip(),
        history=_optional(payload, "patientHistory", "Sin antecedentes"),
        **profile,
    )


def _quick_rx(payload: Mapping[str, Any]) -> str:
    return QUICK_RX_PROMPT.format(
        specialty=_optional(payload, "specialty", DEFAULT_SPECIALTY),
        transcript=_required(payload, "transcript", Action.GENERATE_QUICK_RX),
    )


def _chat_context(payload: Mapping[str, Any]) -> str:
    turns = []
    history = payload.get("history") or []
    if not isinstance(history, list):
        raise InvalidPayloadError(Action.CHAT_CONTEXT.value, "history")
    for turn in history:
        if not isinstance(turn, Mapping):
            raise InvalidPayloadError(Action.CHAT_CONTEXT.value, "history")
        speaker = "MODELO" if turn.get("role") == "model" else "USUARIO"
        turns.append(f"{speaker}: {turn.get('text', '')}")
    history = "HISTORIAL:\n" + "\n".join(turns) + "\n" if turns else ""
    return CHAT_PROMPT.format(
        context=_optional(payload, "context", "Sin contexto"),
        history=history,
        message=_required(payload, "message", Action.CHAT_CONTEXT),
    )


def _dated(template: str, action: Action) -> Callable[[Mapping[str, Any]], str]:
    def build(payload: Mapping[str, Any]) -> str:
        now = _reference_time(payload, action)
        return template.format(
            date_text=describe_date(now),
            date_iso=now.isoformat(timespec="minutes"),
            transcript=_required(payload, "transcript", action),
        )
    return build


REGISTRY: Mapping[Action, PromptTemplate] = MappingProxyType({
    Action.GENERATE_CLINICAL_NOTE: PromptTemplate(_clinical_note, StructuredNote),
    Action.GENERATE_QUICK_RX: PromptTemplate(_quick_rx),
    Action.CHAT_CONTEXT: PromptTemplate(_chat_context),
    Action.VOICE_COMMAND: PromptTemplate(_dated(VOICE_COMMAND_PROMPT, Action.VOICE_COMMAND), AssistantCommand),
    Action.AGENT_COMMAND: PromptTemplate(_dated(AGENT_COMMAND_PROMPT, Action.AGENT_COMMAND), AgentCommand),
})


def resolve_action(action: Any) -> Action:
    if isinstance(action, Action):
        return action
    try:
        return Action(action)
    except ValueError:
        raise UnknownActionError(action) from None


def render(action: Any, payload: Optional[Mapping[str, Any]] = None) -> PromptSpec:
    act = resolve_action(action)
    template = REGISTRY[act]
    return PromptSpec(
        action=act,
        text=template.build(payload or {}),
        expects_structured_output=template.structured,
        contract=template.contract,
    )
