#!/usr/bin/env python3
"""
A parser for exported ECU description files (".ecu").
Parses and holds:
- [Version]         -> VersionRecord
- [Communication]   -> CommunicationRecord (key/value pairs)
- [Identification]  -> IdentificationRecord (key/value pairs)
- [Measurements]    -> MeasurementTable (comma separated rows)

Sections are opened in the priority order listed above: a line goes to the
first section that is still open, so a section without its completing line
swallows everything after it. The [Measurements] block never completes and a
header of a section already read is taken as a measurement row.

Usage:
    result = ECUFileParser().open("your.ecu")
    if result:
        ecu = result.ecu_file
        print(ecu.version_info.version)
        print(f"Measurements: {len(ecu.measurements)}")
        print(ecu.measurements["nmot"])
"""

from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from contextlib import closing
from typing import Callable, Iterable, Iterator, Mapping, Union
import io
import logging
import os
import re
from pathlib import Path
from types import MappingProxyType

log = logging.getLogger(__name__)

VERSION_HEADER = "[Version]"
COMMUNICATION_HEADER = "[Communication]"
IDENTIFICATION_HEADER = "[Identification]"
MEASUREMENTS_HEADER = "[Measurements]"

MEASUREMENT_FIELD_COUNT = 11

INT16_MIN = -32768
INT16_MAX = 32767

_INTEGER_RE = re.compile(r"^[+-]?\d+$", re.ASCII)
_DECIMAL_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)$", re.ASCII)


# --------------------------
# Errors
# --------------------------

class ECUConfigError(Exception):
    """Base class for errors raised by this package."""


class StructuralError(ECUConfigError, ValueError):
    """
    A line violates the structure of its format and the whole parse is aborted.

    Attributes:
        line_number: 1-based line number of the offending line, if known
    """
    def __init__(self, message: str, line_number: int | None = None) -> None:
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


# --------------------------
# Utilities
# --------------------------

def to_int16(token: str) -> int:
    """
    Convert a decimal string token to a signed 16-bit integer.

    Args:
        token: String token to convert, surrounding whitespace allowed

    Returns:
        Integer value in the range -32768..32767

    Raises:
        StructuralError: If the token is not a decimal integer or is out of range

    Example:
        >>> to_int16(" 2 ")
        2
        >>> to_int16("-32768")
        -32768
    """
    s = token.strip()
    if not _INTEGER_RE.match(s):
        raise StructuralError(f"invalid integer {token!r}")
    value = int(s)
    if not INT16_MIN <= value <= INT16_MAX:
        raise StructuralError(f"integer {token!r} out of 16-bit range")
    return value


def to_decimal(token: str) -> Decimal:
    """
    Convert a plain decimal string token (no exponent) to a Decimal.

    Args:
        token: String token to convert, surrounding whitespace allowed

    Returns:
        Decimal value

    Raises:
        StructuralError: If the token is not a plain decimal number

    Example:
        >>> to_decimal("0.75")
        Decimal('0.75')
        >>> to_decimal("-.5")
        Decimal('-0.5')
    """
    s = token.strip()
    if not _DECIMAL_RE.match(s):
        raise StructuralError(f"invalid decimal {token!r}")
    return Decimal(s)


def strip_braces(s: str) -> str:
    """
    Remove every literal '{' and '}' from a field.

    Example:
        >>> strip_braces("{km/h}")
        'km/h'
    """
    return s.replace("{", "").replace("}", "")


def is_section_header(line: str) -> bool:
    s = line.strip()
    return len(s) >= 2 and s[0] == "[" and s[-1] == "]"


def split_lines(text: str) -> list[str]:
    """
    Split text on universal newlines only (CRLF, CR, LF), like read_lines.

    Unlike str.splitlines(), form feeds, vertical tabs and Unicode line
    separators stay part of the line.

    Example:
        >>> split_lines("a\\r\\nb\\x0cc\\n")
        ['a', 'b\\x0cc']
    """
    return [ln.rstrip("\n") for ln in io.StringIO(text, newline=None)]


def read_lines(path: str | Path, encoding: str = "utf-8-sig") -> Iterator[str]:
    """
    Yield the lines of a text file without their line terminators.

    The file is opened with universal newlines, so CRLF and LF files read the
    same. The default encoding drops a leading UTF-8 byte order mark. The file
    is closed once the generator is exhausted or closed.

    Args:
        path: Path to the file
        encoding: Text encoding of the file

    Raises:
        OSError: If the file cannot be opened or read
    """
    with open(path, "r", encoding=encoding, errors="replace") as fh:
        for line in fh:
            yield line.rstrip("\r\n")


# --------------------------
# Dataclasses for structured model
# --------------------------

@dataclass(frozen=True)
class Measurement:
    """
    One row of a device's measurement catalogue.

    Attributes:
        name: Internal measurement name
        alias: Display label, braces removed
        address: Raw address token (e.g. "0x380E8C")
        size: Word size
        bit_mask: Raw bit mask token
        unit: Physical unit, braces removed
        signed: True when the signedness token is "1"
        inverse: True when the inverse token is "2"
        factor: Scaling factor (0 when the source token was malformed)
        offset: Scaling offset
        comment: Free text, braces removed
    """
    name: str
    alias: str = ""
    address: str = ""
    size: int = 0
    bit_mask: str = ""
    unit: str = ""
    signed: bool = False
    inverse: bool = False
    factor: Decimal = Decimal(0)
    offset: Decimal = Decimal(0)
    comment: str = ""

    def __str__(self) -> str:
        if self.alias:
            return f"{self.alias} - ({self.name})"
        return self.name


@dataclass(frozen=True)
class VersionRecord:
    version: str | None = None


@dataclass(frozen=True)
class KeyValueRecord:
    """
    Open-ended record of key/value pairs read from a section.

    Keys keep their original case and the order in which they were read.
    """
    values: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    # the values mapping is not hashable
    __hash__ = None

    def get(self, key: str, default: str | None = None) -> str | None:
        return self.values.get(key, default)

    def __getitem__(self, key: str) -> str:
        return self.values[key]

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


class CommunicationRecord(KeyValueRecord):
    pass


class IdentificationRecord(KeyValueRecord):
    pass


# --------------------------
# Measurement store
# --------------------------

class MeasurementTable:
    """
    Ordered, name-indexed collection of measurements.

    Every measurement added is appended to the ordered list; the name index
    keeps only the last measurement added under a given name, so the two can
    differ in length when names repeat.
    """
    def __init__(self, measurements: Iterable[Measurement] = ()) -> None:
        self._measurements: list[Measurement] = []
        self._by_name: dict[str, Measurement] = {}
        for m in measurements:
            self.add(m)

    @property
    def values(self) -> list[Measurement]:
        return list(self._measurements)

    @property
    def complete(self) -> bool:
        # a measurement block has no end marker
        return False

    def add(self, measurement: Measurement) -> None:
        self._measurements.append(measurement)
        self._by_name[measurement.name] = measurement

    def get(self, name: str) -> Measurement | None:
        return self._by_name.get(name)

    def names(self) -> list[str]:
        return list(self._by_name)

    def read_line(self, line: str) -> None:
        """
        Parse one row of a measurement block and add it to the table.

        Blank lines and lines starting with ';' are skipped.

        Raises:
            StructuralError: If the size or offset field is malformed
        """
        s = line.strip()
        if not s or s.startswith(";"):
            return
        self.add(parse_measurement(line))

    def __getitem__(self, name: str) -> Measurement:
        return self._by_name[name]

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterator[Measurement]:
        return iter(self._measurements)

    def __len__(self) -> int:
        return len(self._measurements)

    def __repr__(self) -> str:
        return f"MeasurementTable({self._measurements!r})"


# --------------------------
# Parsing helpers for known sections
# --------------------------

def parse_measurement(line: str) -> Measurement:
    """
    Parse one measurement row.

    Rows with at least 11 comma separated fields map positionally to
    name, alias, address, size, bit mask, unit, signed, inverse, factor,
    offset and comment. Shorter lines are taken as a bare name: the line as
    given, cut at its first space.

    Args:
        line: A single row of a measurement block

    Returns:
        Measurement built from the row

    Raises:
        StructuralError: If the size or offset field is malformed

    Example:
        >>> parse_measurement("RPM,1A2B,0x100,2,0xFF,rpm,0,0,1.0,0.0,Engine speed").size
        2
        >>> parse_measurement("Coolant Temp Sensor").name
        'Coolant'
    """
    parts = line.split(",")
    if len(parts) < MEASUREMENT_FIELD_COUNT:
        name = line
        if " " in name:
            name = name[:name.index(" ")]
        return Measurement(name=name)

    parts = [p.strip() for p in parts]
    try:
        factor = to_decimal(parts[8])
    except StructuralError:
        log.debug("Malformed factor %r for %s, using 0", parts[8], parts[0])
        factor = Decimal(0)

    return Measurement(
        name=parts[0],
        alias=strip_braces(parts[1]),
        address=parts[2],
        size=to_int16(parts[3]),
        bit_mask=parts[4],
        unit=strip_braces(parts[5]),
        signed=parts[6] == "1",
        inverse=parts[7] == "2",
        factor=factor,
        offset=to_decimal(parts[9]),
        comment=strip_braces(parts[10]),
    )


class VersionSection:
    """Accumulates the [Version] section until its Version key is read."""
    closes_on_header = False

    def __init__(self) -> None:
        self.version: str | None = None
        self.complete = False

    def read_line(self, line: str) -> None:
        parts = line.split("=")
        if len(parts) != 2:
            raise StructuralError("Invalid line for [Version]")
        key = parts[0].strip()
        value = parts[1].strip().strip('"')
        if key == "Version":
            self.version = value
            self.complete = True

    def build(self) -> VersionRecord:
        return VersionRecord(version=self.version)


class KeyValueSection:
    """
    Accumulates 'Key = Value' pairs of an open-ended section.

    The section is complete after a blank line that follows at least one
    pair, or when a section header is reached. Lines without '=' (comments)
    are ignored. Values are trimmed of whitespace and double quotes.
    """
    closes_on_header = True

    def __init__(self, record_type: type[KeyValueRecord]) -> None:
        self.record_type = record_type
        self.values: dict[str, str] = {}
        self.complete = False

    def read_line(self, line: str) -> None:
        s = line.strip()
        if not s:
            if self.values:
                self.complete = True
            return
        if s.startswith(";") or "=" not in s:
            return
        key, value = s.split("=", 1)
        self.values[key.strip()] = value.strip().strip('"')

    def close(self) -> None:
        self.complete = True

    def build(self) -> KeyValueRecord:
        return self.record_type(values=MappingProxyType(dict(self.values)))


class MeasurementSection:
    """Feeds every line of the [Measurements] block to a MeasurementTable."""
    closes_on_header = False

    def __init__(self) -> None:
        self.table = MeasurementTable()

    @property
    def complete(self) -> bool:
        return self.table.complete

    def read_line(self, line: str) -> None:
        self.table.read_line(line)

    def build(self) -> MeasurementTable:
        return self.table


Section = Union[VersionSection, KeyValueSection, MeasurementSection]


# --------------------------
# Section state machine
# --------------------------

class SectionState(Enum):
    IDLE = "idle"
    IN_VERSION = "in_version"
    IN_COMMUNICATION = "in_communication"
    IN_IDENTIFICATION = "in_identification"
    IN_MEASUREMENTS = "in_measurements"
    DONE = "done"


# Evaluated top to bottom for every line; the first matching entry wins.
TRANSITIONS: tuple[tuple[SectionState, str, Callable[[], Section]], ...] = (
    (SectionState.IN_VERSION, VERSION_HEADER, VersionSection),
    (SectionState.IN_COMMUNICATION, COMMUNICATION_HEADER,
     lambda: KeyValueSection(CommunicationRecord)),
    (SectionState.IN_IDENTIFICATION, IDENTIFICATION_HEADER,
     lambda: KeyValueSection(IdentificationRecord)),
    (SectionState.IN_MEASUREMENTS, MEASUREMENTS_HEADER, MeasurementSection),
)


class SectionStateMachine:
    """
    Routes the lines of an ECU file to the section they belong to.

    For each line the transition table is walked in order. An entry whose
    section has not been seen yet opens it when the line equals its header;
    an entry whose section is open and incomplete receives the line. Lines
    that match no entry are dropped.
    """
    def __init__(self) -> None:
        self.state = SectionState.IDLE
        self.sections: dict[SectionState, Section] = {}
        self.line_number = 0

    def feed_line(self, line: str) -> None:
        self.line_number += 1
        if self.state is SectionState.DONE:
            raise RuntimeError("state machine already finished")
        for state, header, factory in TRANSITIONS:
            section = self.sections.get(state)
            if section is None:
                if line == header:
                    log.debug("Line %d: opening %s", self.line_number, header)
                    self.sections[state] = factory()
                    self.state = state
                    return
            elif not section.complete:
                if section.closes_on_header and is_section_header(line):
                    section.close()
                    continue
                self.state = state
                try:
                    section.read_line(line)
                except StructuralError as e:
                    raise StructuralError(str(e), self.line_number) from e
                return
        if line.strip():
            log.debug("Line %d: dropped %r", self.line_number, line)

    def finish(self) -> None:
        self.state = SectionState.DONE

    def build(self, file_path: str = "") -> ECUFile:
        def built(state: SectionState):
            section = self.sections.get(state)
            return section.build() if section is not None else None

        return ECUFile(
            file_path=file_path,
            version_info=built(SectionState.IN_VERSION),
            communication_info=built(SectionState.IN_COMMUNICATION),
            identification_info=built(SectionState.IN_IDENTIFICATION),
            measurements=built(SectionState.IN_MEASUREMENTS),
        )


# --------------------------
# ECU file model
# --------------------------

@dataclass(frozen=True)
class ECUFile:
    """
    Parsed ECU description file. Sections absent from the file are None.
    """
    file_path: str = ""
    version_info: VersionRecord | None = None
    communication_info: CommunicationRecord | None = None
    identification_info: IdentificationRecord | None = None
    measurements: MeasurementTable | None = None

    @property
    def file_name(self) -> str:
        return os.path.basename(self.file_path)


@dataclass(frozen=True)
class OpenResult:
    """
    Outcome of ECUFileParser.open().

    Truthy when the file was parsed to the end. On failure ecu_file holds the
    sections that had been started before the error and error holds the cause.
    """
    success: bool
    ecu_file: ECUFile
    error: Exception | None = None

    def __bool__(self) -> bool:
        return self.success


# --------------------------
# Top-level parser
# --------------------------

class ECUFileParser:
    """
    Main ECU file parser class that converts ECU file text into an ECUFile.
    """
    def __init__(self, encoding: str = "utf-8-sig") -> None:
        self.encoding = encoding

    def parse_file(self, path: str | Path) -> ECUFile:
        """
        Parse an ECU file from disk.

        Args:
            path: Path to the ECU file to parse

        Returns:
            ECUFile object containing parsed data

        Raises:
            OSError: If the file cannot be read
            StructuralError: If a line is malformed
        """
        with closing(read_lines(path, self.encoding)) as lines:
            ecu = self.parse_lines(lines, file_path=str(path))
        log.info("Parsed %s: %d measurements", ecu.file_name,
                 len(ecu.measurements) if ecu.measurements is not None else 0)
        return ecu

    def parse_text(self, text: str, file_path: str = "") -> ECUFile:
        return self.parse_lines(split_lines(text), file_path=file_path)

    def parse_lines(self, lines: Iterable[str], file_path: str = "") -> ECUFile:
        sm = SectionStateMachine()
        for ln in lines:
            sm.feed_line(ln)
        sm.finish()
        return sm.build(file_path)

    def open(self, path: str | Path) -> OpenResult:
        """
        Parse an ECU file, reporting failure instead of raising.

        Args:
            path: Path to the ECU file to parse

        Returns:
            OpenResult; falsy if the file could not be read or was malformed
        """
        sm = SectionStateMachine()
        try:
            with closing(read_lines(path, self.encoding)) as lines:
                for ln in lines:
                    sm.feed_line(ln)
            sm.finish()
        except Exception as e:
            log.warning("Failed to open ECU file %s: %s", path, e)
            return OpenResult(success=False, ecu_file=sm.build(str(path)), error=e)
        return OpenResult(success=True, ecu_file=sm.build(str(path)))
