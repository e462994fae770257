import pytest

from recipe_capture.domain.errors import ErrorKind, ResultAccessError
from recipe_capture.domain.result import Failure, Result, Success


def test_success_exposes_value():
    result = Result.success(42)

    assert result.is_success
    assert not result.is_failure
    assert result.value == 42
    assert isinstance(result, Success)


def test_failure_exposes_message_and_kind():
    result = Result.failure("boom", ErrorKind.PARSING)

    assert result.is_failure
    assert result.error == "boom"
    assert result.kind == ErrorKind.PARSING
    assert isinstance(result, Failure)


def test_failure_kind_defaults_to_unexpected():
    assert Result.failure("boom").kind == ErrorKind.UNEXPECTED


def test_reading_the_wrong_side_raises():
    with pytest.raises(ResultAccessError):
        Result.failure("boom").value
    with pytest.raises(ResultAccessError):
        Result.success(1).error
    with pytest.raises(ResultAccessError):
        Result.success(1).kind


def test_value_or_returns_default_only_for_failures():
    assert Result.success(0).value_or(5) == 0
    assert Result.failure("x").value_or(5) == 5


def test_map_and_bind_short_circuit_on_failure():
    calls = []

    def track(value):
        calls.append(value)
        return Result.success(value * 2)

    assert Result.success(2).map(lambda v: v + 1).value == 3
    assert Result.success(2).bind(track).value == 4

    failed = Result.failure("nope", ErrorKind.VALIDATION).bind(track).map(lambda v: v + 1)
    assert failed.is_failure
    assert failed.error == "nope"
    assert failed.kind == ErrorKind.VALIDATION
    assert calls == [2]


def test_results_are_immutable():
    result = Result.success("value")
    with pytest.raises(AttributeError):
        result.payload = "other"


def test_results_support_pattern_matching():
    match Result.failure("bad", ErrorKind.EXTRACTION):
        case Failure(message=message, error_kind=kind):
            matched = (message, kind)
        case _:
            matched = None
    assert matched == ("bad", ErrorKind.EXTRACTION)


def test_result_base_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Result()


def test_variant_missing_an_accessor_cannot_be_instantiated():
    class Partial(Result):
        @property
        def value(self):
            return 1

    with pytest.raises(TypeError):
        Partial()
