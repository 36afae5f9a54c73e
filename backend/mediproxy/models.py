import re
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    computed_field,
    field_validator,
    model_validator,
)

# YYYY-MM-DDTHH:MM[:SS], local time, no offset or "Z"
_LOCAL_ISO = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2})?$")


# --- request bodies ---

class ProxyRequest(BaseModel):
    action: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class SafetyRequest(BaseModel):
    objective: Optional[str] = None
    note: Optional[str] = None


# --- generate_clinical_note ---

class SOAPData(BaseModel):
    subjective: str
    objective: str
    analysis: str
    plan: str


class RiskAnalysis(BaseModel):
    level: Literal["Low", "Medium", "High"]
    reason: str


class ActionItems(BaseModel):
    next_appointment: Optional[str]
    urgent_referral: StrictBool
    lab_tests_required: List[str]


class Prescription(BaseModel):
    drug: str
    dose: str = ""
    frequency: str = ""
    duration: str = ""
    notes: str = ""


class StructuredNote(BaseModel):
    clinicalNote: str
    soapData: SOAPData
    patientInstructions: str
    risk_analysis: RiskAnalysis
    actionItems: ActionItems
    clinical_suggestions: List[str] = Field(default_factory=list)
    prescriptions: List[Prescription] = Field(default_factory=list)


# --- voice_command ---

class AppointmentData(BaseModel):
    patientName: str
    title: str
    start_time: str
    duration_minutes: int = Field(strict=True, gt=0)
    notes: str = ""

    @field_validator("start_time")
    @classmethod
    def _local_timestamp(cls, v: str) -> str:
        if not _LOCAL_ISO.match(v):
            raise ValueError("start_time must be a local ISO-8601 timestamp without offset")
        datetime.fromisoformat(v)  # rejects impossible dates such as month 13
        return v


class AssistantCommand(BaseModel):
    action: Literal["create_appointment", "unknown"]
    data: Optional[AppointmentData] = None
    message: str

    @model_validator(mode="before")
    @classmethod
    def _unknown_carries_no_data(cls, values):
        # the prompt always shows a data block, so "unknown" replies often echo placeholders
        if isinstance(values, dict) and values.get("action") == "unknown":
            values = {**values, "data": None}
        return values

    @model_validator(mode="after")
    def _appointment_needs_data(self):
        if self.action == "create_appointment" and self.data is None:
            raise ValueError("create_appointment requires data")
        return self


# --- agent_command ---

class AgentCommand(BaseModel):
    intent: Literal["CREATE_APPOINTMENT", "MEDICAL_QUERY", "NAVIGATION", "PATIENT_SEARCH", "UNKNOWN"]
    data: Dict[str, Any] = Field(default_factory=dict)
    confidence: float = Field(ge=0.0, le=1.0)
    message: str = ""


# --- safety rules ---

class RedFlagFinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    rule: Literal["hyperkalemia", "renal_failure", "nsaid_renal"]
    label: str


class SafetyReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    findings: List[RedFlagFinding] = Field(default_factory=list)

    @computed_field
    @property
    def reasons(self) -> List[str]:
        return [f.label for f in self.findings]

    @computed_field
    @property
    def isCritical(self) -> bool:
        return len(self.findings) > 0
