"""
ECU config package for reading ECU description files and reading/writing
logging configuration files.
"""

from .ecu_model import (
    ECUFileParser,
    ECUFile,
    OpenResult,
    VersionRecord,
    CommunicationRecord,
    IdentificationRecord,
    Measurement,
    MeasurementTable,
    SectionState,
    SectionStateMachine,
    parse_measurement,
    ECUConfigError,
    StructuralError,
)
from .log_config import ConfigFile, ConfigFileReader

__all__ = [
    "ECUFileParser",
    "ECUFile",
    "OpenResult",
    "VersionRecord",
    "CommunicationRecord",
    "IdentificationRecord",
    "Measurement",
    "MeasurementTable",
    "SectionState",
    "SectionStateMachine",
    "parse_measurement",
    "ECUConfigError",
    "StructuralError",
    "ConfigFile",
    "ConfigFileReader",
]
