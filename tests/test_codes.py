import json

import pytest

from chatgate.codes import ErrorCode

ALL_VALUES = [0] + list(range(1001, 1012))


def test_lookup_by_value():
    assert ErrorCode(1001) is ErrorCode.ERROR_JSON
    assert ErrorCode(1011) is ErrorCode.UID_INVALID


def test_serialises_as_plain_integer():
    assert json.dumps({"error": ErrorCode(1002)}) == '{"error": 1002}'


def test_unknown_value_raises():
    with pytest.raises(ValueError):
        ErrorCode(9999)


def test_values_are_unique_and_round_trip():
    values = [int(code) for code in ErrorCode]
    assert len(values) == len(set(values))
    for code in ErrorCode:
        assert ErrorCode(int(code)) is code


def test_only_success_is_falsy():
    assert not ErrorCode(0)
    assert all(ErrorCode(value) for value in ALL_VALUES if value != 0)


def test_every_code_has_a_distinct_description():
    descriptions = [ErrorCode(value).description for value in ALL_VALUES]
    assert all(descriptions)
    assert len(set(descriptions)) == len(descriptions)