"""Tests for identifiers, entropy sources, severity and context values."""

import pytest

from xtrace.entropy import SeededEntropy, SequenceEntropy, SystemEntropy, default_entropy
from xtrace.identifiers import OpId, TaskId, is_valid_chain_id
from xtrace.metadata import Metadata, OptionType
from xtrace.severity import Severity


class TestIdentifiers:
    def test_hex_round_trip(self):
        task = TaskId.from_hex("0a0b0c0d")
        assert task.hex() == "0A0B0C0D"
        assert str(task) == "0A0B0C0D"
        assert TaskId.from_hex(task.hex()) == task

    def test_lengths(self):
        for n in (4, 8, 12, 20):
            assert len(TaskId(bytes(n))) == n
        with pytest.raises(ValueError):
            TaskId(bytes(5))
        with pytest.raises(ValueError):
            OpId(bytes(12))

    def test_random_uses_entropy(self):
        a = OpId.random(4, SeededEntropy(3))
        b = OpId.random(4, SeededEntropy(3))
        assert a == b
        assert len(TaskId.random(20, SeededEntropy(3))) == 20

    def test_chain_id_range(self):
        assert is_valid_chain_id(0)
        assert is_valid_chain_id(65535)
        assert not is_valid_chain_id(65536)
        assert not is_valid_chain_id(-1)


class TestEntropy:
    def test_system_entropy(self):
        source = SystemEntropy()
        assert len(source.random_bytes(16)) == 16
        assert 0 <= source.chain_id() <= 0xFFFF

    def test_default_is_shared(self):
        assert default_entropy() is default_entropy()

    def test_sequence(self):
        source = SequenceEntropy(bytes.fromhex("0001FFFF"))
        assert source.chain_id() == 1
        assert source.chain_id() == 0xFFFF
        with pytest.raises(ValueError):
            source.random_bytes(1)


class TestSeverity:
    def test_ordering(self):
        assert Severity.DEBUG < Severity.INFO < Severity.NOTICE < Severity.WARNING
        assert Severity.WARNING < Severity.ERROR < Severity.CRITICAL

    def test_from_name(self):
        assert Severity.from_name("notice") == Severity.NOTICE
        assert Severity.from_name("LOUD") is None

    def test_logging_level(self):
        assert Severity.NOTICE.logging_level == Severity.INFO.logging_level
        assert Severity.ERROR.logging_level == 40


class TestMetadata:
    def test_invalid(self):
        assert not Metadata.invalid().is_valid
        assert not Metadata(task_id=TaskId(bytes(4))).is_valid
        assert str(Metadata.invalid()) == "<invalid>"

    def test_invalid_values_are_independent(self):
        assert Metadata.invalid() == Metadata.invalid()
        assert Metadata.invalid() is not Metadata.invalid()

    def test_options(self):
        md = Metadata(task_id=TaskId(bytes(4)), op_id=OpId(bytes(4)))
        assert md.chain_id is None
        md2 = md.with_option(OptionType.CHAIN_ID, 3).with_option(OptionType.CHAIN_ID, 5)
        assert md2.chain_id == 5
        assert md.chain_id is None
        assert md2.options == ((OptionType.CHAIN_ID, 5),)

    def test_severity_option(self):
        md = Metadata().with_option(OptionType.SEVERITY, 40)
        assert md.severity == Severity.ERROR
        assert Metadata().with_option(OptionType.SEVERITY, 3).severity is None

    def test_str(self):
        md = Metadata(
            task_id=TaskId(bytes.fromhex("01020304")),
            op_id=OpId(bytes.fromhex("0A0B0C0D")),
            options=((OptionType.CHAIN_ID, 2),),
        )
        assert str(md) == "01020304/0A0B0C0D#2"
