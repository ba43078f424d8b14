"""
validator — walidator pliku modelu relacyjnego (JSON).

Interfejs publiczny:
    ModelValidator   — główny walidator (etapy A–E)
    MODEL_SCHEMA     — JSON Schema dokumentu modelu
    ValidationReport, ValidationError, ErrorCode — typy raportu

Typowe użycie:
    from validator import ModelValidator

    raw    = json.loads(Path("models/ros_cmdvel.json").read_text(encoding="utf-8"))
    report = ModelValidator().validate(raw)
    if not report.is_valid:
        for e in report.errors:
            print(e.code, e.path, e.message)
"""

from .types import ErrorCode, ValidationError, ValidationReport
from .schema import MODEL_SCHEMA
from .model_validator import ModelValidator

__all__ = [
    "ErrorCode",
    "ValidationError",
    "ValidationReport",
    "MODEL_SCHEMA",
    "ModelValidator",
]
