#!/usr/bin/env python3
"""
Unit tests for the recovering state-machine parser.
"""
import pytest
from datetime import datetime

from tlelint import state_machine
from tlelint.checksum import with_checksum
from tlelint.issues import ErrorCode, ParserState, RecoveryKind, Severity
from tlelint.state_machine import (
    TRANSITIONS,
    StateMachineOptions,
    TLEFormat,
    TLEStateMachineParser,
    parse_with_state_machine,
)


ISS_NAME = "ISS (ZARYA)"
ISS_LINE1 = "1 25544U 98067A   20300.83097691  .00001534  00000-0  35580-4 0  9996"
ISS_LINE2 = "2 25544  51.6453  57.0843 0001671  64.9808  73.0513 15.49338189252428"
ISS_TLE = f"{ISS_NAME}\n{ISS_LINE1}\n{ISS_LINE2}"

BAD_CHECKSUM_TLE = f"{ISS_NAME}\n{ISS_LINE1[:68]}5\n{ISS_LINE2}"

FRESH = datetime(2020, 11, 1)


def _parse(text, **overrides):
    overrides.setdefault("reference_time", FRESH)
    return parse_with_state_machine(text, **overrides)


def _kinds(result):
    return [a.kind for a in result.recovery_actions]


# ═══════════════════════════════════════════════════════════════
# HAPPY PATH
# ═══════════════════════════════════════════════════════════════
class TestValidInput:
    def test_iss(self):
        result = _parse(ISS_TLE)
        assert result.success
        assert result.final_state is ParserState.COMPLETED
        assert result.data["satellite_name"] == ISS_NAME
        assert result.data["satellite_number1"] == "25544"
        assert result.data["satellite_number2"] == "25544"
        assert result.data["checksum1"] == "6"
        assert result.data["checksum2"] == "8"
        assert result.errors == ()
        assert result.warnings == ()
        assert result.recovery_actions == ()

    def test_context(self):
        result = _parse(ISS_TLE)
        assert result.context.line_count == 3
        assert result.context.has_name
        assert result.context.format is TLEFormat.THREE_LINE
        assert result.context.recovery_attempts == 0

    def test_transitions(self):
        result = _parse(ISS_TLE)
        assert [t for _, t in result.transitions] == [
            ParserState.DETECTING_FORMAT,
            ParserState.PARSING_NAME,
            ParserState.PARSING_LINE1,
            ParserState.PARSING_LINE2,
            ParserState.VALIDATING,
            ParserState.COMPLETED,
        ]
        for source, target in result.transitions:
            assert target in TRANSITIONS[source]

    def test_two_line(self):
        result = _parse(f"{ISS_LINE1}\n{ISS_LINE2}")
        assert result.success
        assert result.context.format is TLEFormat.TWO_LINE
        assert not result.context.has_name
        assert result.data["satellite_name"] is None
        assert ParserState.PARSING_NAME not in [t for _, t in result.transitions]

    def test_comments_and_crlf(self):
        result = _parse(f"# celestrak\r\n{ISS_TLE.replace(chr(10), chr(13) + chr(10))}\r\n")
        assert result.success
        assert result.comments == ("# celestrak",)
        assert result.data.comments == ("# celestrak",)

    def test_summary(self):
        assert "ISS (ZARYA) (25544): COMPLETED" in _parse(ISS_TLE).summary()


# ═══════════════════════════════════════════════════════════════
# RECOVERY
# ═══════════════════════════════════════════════════════════════
class TestRecovery:
    def test_checksum_mismatch_recovered(self):
        result = _parse(BAD_CHECKSUM_TLE)
        assert result.success
        assert result.data["satellite_number1"] == "25544"
        assert result.data["inclination"] == "51.6453"

        mismatches = [i for i in result.issues if i.code is ErrorCode.CHECKSUM_MISMATCH]
        assert len(mismatches) == 1
        assert mismatches[0].state is ParserState.PARSING_LINE1
        assert mismatches[0].details["expected"] == 6
        assert mismatches[0].details["actual"] == 5
        assert RecoveryKind.CONTINUE in _kinds(result)

    def test_truncated_line_yields_partial_data(self):
        result = _parse(f"{ISS_NAME}\n{ISS_LINE1[:40]}\n{ISS_LINE2}")
        assert result.success
        assert result.data["epoch_day"] == "300.83097691"
        assert result.data["first_derivative"] == ".00001"
        assert result.data["bstar"] is None
        assert [e.code for e in result.errors] == [ErrorCode.INVALID_LINE_LENGTH]

        codes = [w.code for w in result.warnings]
        assert codes.count(ErrorCode.PARTIAL_FIELD) == 1
        assert codes.count(ErrorCode.MISSING_FIELD) == 5
        assert _kinds(result).count(RecoveryKind.USE_DEFAULT) == 6
        assert result.context.recovery_attempts == 1

    def test_both_lines_truncated_complete_with_defaults(self):
        result = _parse(f"{ISS_NAME}\n{ISS_LINE1[:40]}\n{ISS_LINE2[:40]}")
        assert result.success
        assert result.final_state is ParserState.COMPLETED
        assert [e.code for e in result.errors] == [ErrorCode.INVALID_LINE_LENGTH] * 2
        assert _kinds(result).count(RecoveryKind.USE_DEFAULT) == 11
        assert result.context.recovery_attempts == 2
        assert result.data["eccentricity"] == "0001671"
        assert result.data["mean_motion"] is None

    def test_excess_lines_recovered(self):
        text = f"CATALOG EXPORT\n{ISS_TLE}\nEND OF FILE"
        result = _parse(text)
        assert result.success
        assert result.data["satellite_name"] == ISS_NAME
        assert result.context.format is TLEFormat.THREE_LINE
        assert [e.code for e in result.errors] == [ErrorCode.INVALID_LINE_COUNT]
        assert result.errors[0].severity is Severity.ERROR
        assert _kinds(result) == [RecoveryKind.ATTEMPT_FIX, RecoveryKind.CONTINUE]

    def test_excess_lines_without_name(self):
        result = _parse(f"{ISS_LINE1}\n{ISS_LINE2}\nnoise\nmore noise")
        assert result.success
        assert result.context.format is TLEFormat.TWO_LINE

    def test_excess_lines_ambiguous(self):
        result = _parse(f"{ISS_TLE}\n{ISS_TLE}")
        assert not result.success
        assert result.final_state is ParserState.ERROR
        assert result.errors[0].code is ErrorCode.INVALID_LINE_COUNT
        assert result.errors[0].severity is Severity.CRITICAL
        assert RecoveryKind.ABORT in _kinds(result)

    def test_excess_lines_recovery_disabled(self):
        result = _parse(f"CATALOG EXPORT\n{ISS_TLE}", attempt_recovery=False)
        assert result.final_state is ParserState.ERROR
        assert result.errors[0].severity is Severity.CRITICAL

    def test_recovery_budget(self):
        result = _parse(BAD_CHECKSUM_TLE, max_recovery_attempts=0)
        assert result.final_state is ParserState.ERROR
        codes = [i.code for i in result.issues]
        assert codes.count(ErrorCode.RECOVERY_LIMIT_EXCEEDED) == 1
        assert RecoveryKind.ABORT in _kinds(result)

    def test_recovery_budget_reported_once(self):
        line1 = "3" + ISS_LINE1[1:68] + "5"
        result = _parse(f"{ISS_NAME}\n{line1}\n{ISS_LINE2}", max_recovery_attempts=0)
        assert not result.success
        codes = [i.code for i in result.issues]
        assert ErrorCode.INVALID_LINE_NUMBER in codes
        assert ErrorCode.CHECKSUM_MISMATCH in codes
        assert codes.count(ErrorCode.RECOVERY_LIMIT_EXCEEDED) == 1
        assert result.context.recovery_attempts == 0

    def test_field_defaults_not_charged_to_budget(self):
        result = _parse(f"{ISS_NAME}\n{ISS_LINE1[:40]}\n{ISS_LINE2}", max_recovery_attempts=1)
        assert result.success
        assert _kinds(result).count(RecoveryKind.USE_DEFAULT) == 6
        assert result.context.recovery_attempts == 1


# ═══════════════════════════════════════════════════════════════
# OUTCOME RULES
# ═══════════════════════════════════════════════════════════════
class TestOutcome:
    def test_strict_mode_aborts_on_error(self):
        result = _parse(BAD_CHECKSUM_TLE, strict_mode=True)
        assert not result.success
        assert result.final_state is ParserState.ERROR
        assert result.transitions[-1] == (ParserState.PARSING_LINE1, ParserState.ERROR)
        assert result.data["satellite_number1"] == "25544"
        assert _kinds(result)[-1] is RecoveryKind.ABORT

    def test_no_recovery_aborts_on_error(self):
        result = _parse(BAD_CHECKSUM_TLE, attempt_recovery=False)
        assert result.final_state is ParserState.ERROR
        assert RecoveryKind.CONTINUE not in _kinds(result)

    def test_no_partial_results(self):
        result = _parse(BAD_CHECKSUM_TLE, include_partial_results=False)
        assert result.final_state is ParserState.ERROR
        assert result.data is None

    def test_warnings_never_fail(self):
        line1 = with_checksum(ISS_LINE1[:7] + "C" + ISS_LINE1[8:])
        result = _parse(f"{ISS_NAME}\n{line1}\n{ISS_LINE2}", reference_time=datetime(2024, 1, 1))
        assert result.success
        assert result.errors == ()
        codes = [w.code for w in result.warnings]
        assert ErrorCode.CLASSIFIED_DATA_WARNING in codes
        assert ErrorCode.STALE_TLE_WARNING in codes

    def test_name_starting_with_digit_warns(self):
        result = _parse(f"1ST SAT\n{ISS_LINE1}\n{ISS_LINE2}")
        assert result.success
        assert [w.code for w in result.warnings] == [ErrorCode.SATELLITE_NAME_FORMAT_WARNING]

    @pytest.mark.parametrize("overrides", [
        {},
        {"strict_mode": True},
        {"attempt_recovery": False},
        {"include_partial_results": False},
        {"validate": False},
    ])
    def test_single_line_always_fails(self, overrides):
        result = _parse(ISS_LINE1, **overrides)
        assert result.final_state is ParserState.ERROR
        assert not result.success
        assert result.issues[0].code is ErrorCode.INVALID_LINE_COUNT
        assert result.issues[0].severity is Severity.CRITICAL
        assert result.data is None

    def test_validation_disabled(self):
        line2 = with_checksum(ISS_LINE2[:8] + "200.0000" + ISS_LINE2[16:])
        assert not _parse(f"{ISS_LINE1}\n{line2}", include_partial_results=False).success
        assert _parse(f"{ISS_LINE1}\n{line2}", validate=False, include_partial_results=False).success

    def test_ranges_disabled(self):
        line2 = with_checksum(ISS_LINE2[:8] + "200.0000" + ISS_LINE2[16:])
        result = _parse(f"{ISS_LINE1}\n{line2}", validate_ranges=False)
        assert result.errors == ()


# ═══════════════════════════════════════════════════════════════
# INPUT HANDLING & GUARDS
# ═══════════════════════════════════════════════════════════════
class TestInputAndGuards:
    @pytest.mark.parametrize("value, code", [
        (None, ErrorCode.INVALID_INPUT_TYPE),
        (12345, ErrorCode.INVALID_INPUT_TYPE),
        ("", ErrorCode.EMPTY_INPUT),
        ("  \n\t\n", ErrorCode.EMPTY_INPUT),
    ])
    def test_bad_input_never_raises(self, value, code):
        result = parse_with_state_machine(value)
        assert result.final_state is ParserState.ERROR
        assert [i.code for i in result.issues] == [code]
        assert result.data is None

    def test_iteration_guard(self, monkeypatch):
        monkeypatch.setattr(state_machine, "MAX_ITERATIONS", 2)
        result = _parse(ISS_TLE)
        assert result.final_state is ParserState.ERROR
        assert result.issues[-1].code is ErrorCode.STATE_MACHINE_LOOP

    def test_terminal_states_have_no_edges(self):
        assert TRANSITIONS[ParserState.COMPLETED] == frozenset()
        assert TRANSITIONS[ParserState.ERROR] == frozenset()
        assert ParserState.INITIAL not in set().union(*TRANSITIONS.values())


class TestParserInstance:
    def test_reuse_does_not_leak_state(self):
        parser = TLEStateMachineParser(reference_time=FRESH)
        assert not parser.parse(ISS_LINE1).success
        parser.parse(BAD_CHECKSUM_TLE)

        result = parser.parse(ISS_TLE)
        assert result.success
        assert result.issues == ()
        assert result.recovery_actions == ()
        assert result.context.recovery_attempts == 0

    def test_overrides(self):
        parser = TLEStateMachineParser(StateMachineOptions(max_recovery_attempts=3), strict_mode=True)
        assert parser.options.strict_mode
        assert parser.options.max_recovery_attempts == 3

    def test_options_validated(self):
        with pytest.raises(ValueError):
            StateMachineOptions(max_recovery_attempts=-1)
        with pytest.raises(TypeError):
            StateMachineOptions(max_recovery_attempts="10")
