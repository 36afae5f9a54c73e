import json

import pytest


NOTE = {
    "clinicalNote": "Paciente masculino de 64 años con dolor lumbar.",
    "soapData": {
        "subjective": "Dolor lumbar de 3 días.",
        "objective": "Potasio: 6.1, TFG: 45",
        "analysis": "Lumbalgia mecánica.",
        "plan": "indicamos ibuprofeno 400mg",
    },
    "patientInstructions": "Reposo relativo.",
    "risk_analysis": {"level": "Medium", "reason": "Hiperkalemia en laboratorio."},
    "actionItems": {"next_appointment": None, "urgent_referral": False, "lab_tests_required": ["Electrolitos"]},
}


class FakeGateway:
    """Stands in for GeminiGateway: records every spec and replays a canned reply."""

    def __init__(self, reply: str = "ok", error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def invoke(self, spec):
        self.calls.append(spec)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def note_dict():
    return json.loads(json.dumps(NOTE))


@pytest.fixture
def note_json(note_dict):
    return json.dumps(note_dict, ensure_ascii=False)


@pytest.fixture
def make_gateway():
    return FakeGateway
