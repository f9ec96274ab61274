#!/usr/bin/env python3
"""
Reader and writer for logging configuration files.

A logging configuration names the ECU characteristics it was made for and
the measurements to record:

    [Configuration]
    ECUCharacteristics = 8D0907551M.ecu
    SamplesPerSecond = 20

    [LogVariables]
    ;Name            [Alias]                             [; Comment]
    nmot            ;EngineSpeed                          ; Engine speed

Note: rows are written ';'-delimited but read back with the comma separated
measurement row format, so a written file reads back as bare names only.

Usage:
    cfg = ConfigFile("8D0907551M.ecu", ecu.measurements)
    cfg.write("log.cfg")
    loaded = ConfigFile.read("log.cfg")
"""

from __future__ import annotations
from contextlib import closing
from dataclasses import dataclass
from typing import Iterable, TextIO
import logging
from pathlib import Path

from .ecu_model import (
    MeasurementTable,
    StructuralError,
    read_lines,
    split_lines,
    to_int16,
)

log = logging.getLogger(__name__)

CONFIGURATION_HEADER = "[Configuration]"
LOG_VARIABLES_HEADER = "[LogVariables]"
ECU_CHARACTERISTICS_KEY = "ECUCharacteristics"
SAMPLES_PER_SECOND_KEY = "SamplesPerSecond"

DEFAULT_SAMPLES_PER_SECOND = 20
NAME_COLUMN_WIDTH = 16
ALIAS_COLUMN_WIDTH = 37
LOG_VARIABLES_COMMENT = ";Name            [Alias]                             [; Comment]"


def value_after_equals(line: str) -> str:
    """
    Return the trimmed text between the first and second '=' of a line.

    Raises:
        StructuralError: If the line has no '='

    Example:
        >>> value_after_equals("SamplesPerSecond = 20")
        '20'
    """
    parts = line.split("=")
    if len(parts) < 2:
        raise StructuralError(f"missing '=' in {line!r}")
    return parts[1].strip()


@dataclass(frozen=True)
class ConfigFile:
    """
    Logging configuration: target ECU characteristics and measurements to log.

    Attributes:
        ecu_characteristics: Identifier of the ECU calibration profile
        measurements: Measurements to log, None if the file had no [LogVariables]
        samples_per_second: Sample rate read from the file
    """
    ecu_characteristics: str
    measurements: MeasurementTable | None = None
    samples_per_second: int = DEFAULT_SAMPLES_PER_SECOND

    def to_text(self) -> str:
        """Render the configuration in logging configuration file format.

        The sample rate written is always DEFAULT_SAMPLES_PER_SECOND.
        """
        lines: list[str] = []
        lines.append(CONFIGURATION_HEADER)
        lines.append(f"{ECU_CHARACTERISTICS_KEY} = {self.ecu_characteristics}")
        lines.append(f"{SAMPLES_PER_SECOND_KEY} = {DEFAULT_SAMPLES_PER_SECOND}")
        lines.append("")
        lines.append(LOG_VARIABLES_HEADER)
        lines.append(LOG_VARIABLES_COMMENT)
        for m in self.measurements or ():
            lines.append(f"{m.name.ljust(NAME_COLUMN_WIDTH)};"
                         f"{m.alias.ljust(ALIAS_COLUMN_WIDTH)}; {m.comment}")
        return "\n".join(lines) + "\n"

    def dump(self, stream: TextIO) -> None:
        stream.write(self.to_text())

    def write(self, filepath: str | Path, encoding: str = "utf-8") -> None:
        """Write the configuration to a file, replacing any existing file.

        Args:
            filepath: Path to save the configuration file
            encoding: Text encoding of the file

        Raises:
            IOError: If file cannot be written
        """
        text = self.to_text()
        try:
            with open(filepath, "w", encoding=encoding) as f:
                f.write(text)
        except IOError as e:
            raise IOError(f"Failed to write logging configuration to {filepath}: {e}")
        log.info("Wrote %s with %d measurements", filepath,
                 len(self.measurements) if self.measurements is not None else 0)

    @classmethod
    def read(cls, filepath: str | Path, ecu_characteristics: str = "",
             encoding: str = "utf-8-sig") -> ConfigFile:
        """
        Read a logging configuration file.

        Args:
            filepath: Path to the configuration file
            ecu_characteristics: Value kept unless the file names its own
            encoding: Text encoding of the file

        Returns:
            ConfigFile with the values read from the file

        Raises:
            OSError: If the file cannot be read
            StructuralError: If a setting or measurement row is malformed
        """
        reader = ConfigFileReader(ecu_characteristics)
        with closing(read_lines(filepath, encoding)) as lines:
            reader.feed_lines(lines)
        cfg = reader.build()
        log.info("Read %s: %d measurements", filepath,
                 len(cfg.measurements) if cfg.measurements is not None else 0)
        return cfg

    @classmethod
    def parse_text(cls, text: str, ecu_characteristics: str = "") -> ConfigFile:
        reader = ConfigFileReader(ecu_characteristics)
        reader.feed_lines(split_lines(text))
        return reader.build()


class ConfigFileReader:
    """
    Accumulates the lines of a logging configuration file.

    Once [LogVariables] is seen every following line is a measurement row,
    settings included.
    """
    def __init__(self, ecu_characteristics: str = "") -> None:
        self.ecu_characteristics = ecu_characteristics
        self.samples_per_second = 0
        self.measurements: MeasurementTable | None = None
        self.line_number = 0

    def feed_lines(self, lines: Iterable[str]) -> None:
        for ln in lines:
            self.feed_line(ln)

    def feed_line(self, line: str) -> None:
        self.line_number += 1
        s = line.strip()
        if not s or s.startswith(";"):
            return
        try:
            if self.measurements is None and s == LOG_VARIABLES_HEADER:
                self.measurements = MeasurementTable()
            elif self.measurements is not None and not self.measurements.complete:
                self.measurements.read_line(s)
            elif s.startswith(ECU_CHARACTERISTICS_KEY):
                self.ecu_characteristics = value_after_equals(s)
            elif s.startswith(SAMPLES_PER_SECOND_KEY):
                self.samples_per_second = to_int16(value_after_equals(s))
            else:
                log.debug("Line %d: dropped %r", self.line_number, s)
        except StructuralError as e:
            raise StructuralError(str(e), self.line_number) from e

    def build(self) -> ConfigFile:
        return ConfigFile(
            ecu_characteristics=self.ecu_characteristics,
            measurements=self.measurements,
            samples_per_second=self.samples_per_second,
        )
