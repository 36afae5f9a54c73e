"""Deterministic red-flag rules over the free text of a clinical note.

Pure and synchronous: no I/O, no state, never raises. A lab value that
cannot be found is "absent" and every rule that needs it is skipped; a
value of 0 is a real reading and still takes part.
"""
import re
from typing import List, Optional

from .models import RedFlagFinding, SafetyReport, StructuredNote

POTASSIUM = re.compile(r"potasio[:\s]*(\d+\.?\d*)|k[:\s]*(\d+\.?\d*)", re.IGNORECASE)
GFR = re.compile(r"tfg[:\s]*(\d+\.?\d*)|filtrado[:\s]*(\d+\.?\d*)", re.IGNORECASE)
NSAIDS = re.compile(r"ibuprofeno|naproxeno|diclofenaco|ketorolaco|aine", re.IGNORECASE)

HYPERKALEMIA_ABOVE = 5.5
RENAL_FAILURE_BELOW = 30.0
NSAID_GFR_BELOW = 60.0


def extract_value(pattern: re.Pattern, text: str) -> Optional[float]:
    match = pattern.search(text)
    if not match:
        return None
    for group in match.groups():
        if group:
            return float(group)
    return None


def _fmt(value: float) -> str:
    return f"{value:g}"


def evaluate(objective_text: Optional[str], note_text: Optional[str]) -> SafetyReport:
    objective = objective_text or ""
    note = note_text or ""
    findings: List[RedFlagFinding] = []

    potassium = extract_value(POTASSIUM, objective)
    if potassium is not None and potassium > HYPERKALEMIA_ABOVE:
        findings.append(RedFlagFinding(rule="hyperkalemia",
                                       label=f"Hiperkalemia Crítica (K: {_fmt(potassium)})"))

    gfr = extract_value(GFR, objective)
    if gfr is not None and gfr < RENAL_FAILURE_BELOW:
        findings.append(RedFlagFinding(rule="renal_failure",
                                       label=f"Falla Renal Estadio 4-5 (TFG: {_fmt(gfr)})"))

    if gfr is not None and gfr < NSAID_GFR_BELOW and NSAIDS.search(note):
        findings.append(RedFlagFinding(rule="nsaid_renal",
                                       label="Uso de AINE contraindicado por daño renal"))

    return SafetyReport(findings=findings)


def evaluate_note(note: StructuredNote) -> SafetyReport:
    """Run the rules on a generated note: labs from the objective, drugs from note and plan."""
    return evaluate(note.soapData.objective, f"{note.clinicalNote}\n{note.soapData.plan}")
