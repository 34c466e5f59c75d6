"""
Tolerance check for checklist measurements.
"""

from typing import Optional

from src.schemas.models import ChecklistItem, MeasurementValidation
from utils.validators import parse_number

NO_PARAMETERS = "Sem parâmetros de validação"
NO_EXPECTED_VALUE = "Valor esperado não definido"
WITHIN_TOLERANCE = "Dentro da tolerância"


def validate_measurement(item: ChecklistItem, measured_value: float) -> MeasurementValidation:
    """
    Check a reading against the item's expected value and tolerance.

    Range is expected +/- expected * tolerance_percent / 100. Deviation is the
    absolute percent difference from the expected value, computed even when
    the reading is valid. Items without numeric parameters always pass.
    """
    if not item.valor_esperado or not item.tolerance_percent:
        return MeasurementValidation(is_valid=True, deviation=0, message=NO_PARAMETERS)

    expected: Optional[float] = parse_number(item.valor_esperado)
    if expected is None:
        # qualitative or range-shaped target such as "75-100"
        return MeasurementValidation(is_valid=True, deviation=0, message=NO_EXPECTED_VALUE)

    tolerance = expected * item.tolerance_percent / 100
    low, high = sorted((expected - tolerance, expected + tolerance))
    is_valid = low <= measured_value <= high

    if expected == 0:
        deviation = 0.0 if measured_value == 0 else float("inf")
    else:
        deviation = abs((measured_value - expected) / expected) * 100

    if is_valid:
        message = WITHIN_TOLERANCE
    else:
        unit = f" {item.unidade}" if item.unidade else ""
        message = f"Fora da faixa ({low:.2f} - {high:.2f}{unit})"

    return MeasurementValidation(is_valid=is_valid, deviation=deviation, message=message)
