#!/usr/bin/env python3
"""
Test suite for logging configuration read/write.
"""

from ecuconfig import ConfigFile, ECUFileParser, Measurement, MeasurementTable, StructuralError
from decimal import Decimal
import io
import os
import pytest

DEMO_ECU = os.path.join(os.path.dirname(__file__), "demo.ecu")


def demo_measurements() -> MeasurementTable:
    return ECUFileParser().parse_file(DEMO_ECU).measurements


def test_export_basic()->None:
    """Test the exact layout written for the demo measurements."""
    cfg = ConfigFile("8D0907551M", demo_measurements())
    text = cfg.to_text()

    assert text.splitlines() == [
        "[Configuration]",
        "ECUCharacteristics = 8D0907551M",
        "SamplesPerSecond = 20",
        "",
        "[LogVariables]",
        ";Name            [Alias]                             [; Comment]",
        "nmot            ;EngineSpeed                          ; Engine speed",
        "tans            ;IntakeAirTemp                        ; Intake air temperature",
        "B_kuppl         ;ClutchSwitch                         ; Clutch pedal switch",
        "rl_w            ;Engine Load                          ; Relative air charge",
    ]


def test_export_long_values_are_not_truncated()->None:
    table = MeasurementTable([Measurement(name="n" * 20, alias="a" * 40, comment="c")])
    row = ConfigFile("x", table).to_text().splitlines()[-1]
    assert row == "n" * 20 + ";" + "a" * 40 + "; c"


def test_export_bare_names()->None:
    table = MeasurementTable([Measurement(name="nmot")])
    row = ConfigFile("x", table).to_text().splitlines()[-1]
    assert row == "nmot".ljust(16) + ";" + " " * 37 + "; "


def test_export_ignores_samples_per_second()->None:
    cfg = ConfigFile("x", MeasurementTable(), samples_per_second=100)
    assert "SamplesPerSecond = 20" in cfg.to_text()


def test_export_without_measurements()->None:
    lines = ConfigFile("x").to_text().splitlines()
    assert lines[-2:] == [
        "[LogVariables]",
        ";Name            [Alias]                             [; Comment]",
    ]


def test_export_dump_stream()->None:
    cfg = ConfigFile("8D0907551M", demo_measurements())
    buf = io.StringIO()
    cfg.dump(buf)
    assert buf.getvalue() == cfg.to_text()


def test_export_file(tmp_path)->None:
    """Test writing to a file, overwriting, and the error for a bad path."""
    path = tmp_path / "log.cfg"
    path.write_text("old content\n", encoding="utf-8")

    cfg = ConfigFile("8D0907551M", demo_measurements())
    cfg.write(path)

    with open(path, "r", encoding="utf-8") as f:
        content = f.read()
    assert content == cfg.to_text()
    assert "old content" not in content

    with pytest.raises(IOError):
        cfg.write(tmp_path / "missing_dir" / "log.cfg")


def test_read_config(tmp_path)->None:
    path = tmp_path / "log.cfg"
    path.write_text(
        "[Configuration]\r\n"
        "ECUCharacteristics = 8D0907551M\r\n"
        "SamplesPerSecond = 10\r\n"
        "\r\n"
        "[LogVariables]\r\n"
        ";Name, Alias, Address, Size, Bitmask, Unit, S, I, Factor, Offset, Comment\r\n"
        "  nmot, EngineSpeed, 0x380E8C, 1, 0x0000, {rpm}, 0, 0, 40, 0, {Engine speed}\r\n"
        "tans\r\n",
        encoding="utf-8",
    )
    cfg = ConfigFile.read(path, "ignored")

    assert cfg.ecu_characteristics == "8D0907551M"
    assert cfg.samples_per_second == 10
    assert cfg.measurements.names() == ["nmot", "tans"]
    nmot = cfg.measurements["nmot"]
    assert nmot.unit == "rpm"
    assert nmot.factor == Decimal("40")
    assert str(nmot) == "EngineSpeed - (nmot)"


def test_read_keeps_given_characteristics()->None:
    cfg = ConfigFile.parse_text("[LogVariables]\nnmot\n", "8D0907551M")
    assert cfg.ecu_characteristics == "8D0907551M"
    assert cfg.samples_per_second == 0


def test_read_without_log_variables()->None:
    cfg = ConfigFile.parse_text("[Configuration]\nECUCharacteristics = a = b\n")
    assert cfg.measurements is None
    assert cfg.ecu_characteristics == "a"


def test_read_settings_after_log_variables_are_rows()->None:
    cfg = ConfigFile.parse_text("[LogVariables]\nnmot\nSamplesPerSecond = 5\n")
    assert cfg.samples_per_second == 0
    assert cfg.measurements.names() == ["nmot", "SamplesPerSecond"]


@pytest.mark.parametrize("line", [
    "SamplesPerSecond = fast",
    "SamplesPerSecond = 40000",
    "SamplesPerSecond",
    "ECUCharacteristics",
])
def test_read_bad_setting_is_fatal(line: str)->None:
    with pytest.raises(StructuralError) as excinfo:
        ConfigFile.parse_text(f"[Configuration]\n{line}\n")
    assert excinfo.value.line_number == 2


def test_read_bad_offset_is_fatal()->None:
    with pytest.raises(StructuralError):
        ConfigFile.parse_text("[LogVariables]\nx,a,0x0,1,0,u,0,0,1,bad,c\n")


def test_read_missing_file(tmp_path)->None:
    with pytest.raises(OSError):
        ConfigFile.read(tmp_path / "missing.cfg")


def test_write_then_read_is_not_a_roundtrip(tmp_path)->None:
    """Rows are written ';'-delimited but read as comma separated rows.

    Only the names survive, as bare names; alias and comment are lost.
    """
    path = tmp_path / "log.cfg"
    original = demo_measurements()
    ConfigFile("8D0907551M", original).write(path)

    loaded = ConfigFile.read(path)

    assert loaded.ecu_characteristics == "8D0907551M"
    assert loaded.samples_per_second == 20
    assert loaded.measurements.names() == original.names()
    assert loaded.measurements.values != original.values
    for m in loaded.measurements:
        assert m == Measurement(name=m.name)


def test_read_config_with_byte_order_mark(tmp_path)->None:
    path = tmp_path / "bom.cfg"
    path.write_bytes("[LogVariables]\nnmot\n".encode("utf-8-sig"))
    cfg = ConfigFile.read(path)
    assert cfg.measurements is not None
    assert cfg.measurements.names() == ["nmot"]


def test_parse_text_keeps_form_feed_in_row()->None:
    cfg = ConfigFile.parse_text("[LogVariables]\r\nab\x0ccd\rnmot\n")
    assert cfg.measurements.names() == ["ab\x0ccd", "nmot"]
