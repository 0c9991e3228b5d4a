import math

import pytest

from workflow_editor.core.workflow.condition import (
    evaluate_condition,
    evaluate_condition_config,
    loose_equals,
    parse_float,
    strict_equals,
)


@pytest.mark.parametrize(
    "operator,a,b,expected",
    [
        ("equals", "5", 5, True),
        ("equals", "a", "b", False),
        ("strictEquals", "5", 5, False),
        ("strictEquals", 5, 5.0, True),
        ("notEquals", "5", 6, True),
        ("greaterThan", "10", "9", True),
        ("greaterThan", "abc", "1", False),
        ("lessThan", "1", "2", True),
        ("greaterOrEqual", "3px", 3, True),
        ("lessOrEqual", 4, "3", False),
        ("contains", "hello world", "world", True),
        ("contains", "hello", "bye", False),
        ("isEmpty", "", None, True),
        ("isEmpty", None, None, True),
        ("isEmpty", "a", None, False),
        ("isNotEmpty", "a", None, True),
        ("isTrue", "true", None, True),
        ("isTrue", 1, None, True),
        ("isTrue", "yes", None, False),
        ("isFalse", "0", None, True),
        ("isFalse", False, None, True),
        ("unknownOperator", 1, 1, False),
    ],
)
def test_evaluate_condition(operator, a, b, expected):
    assert evaluate_condition(operator, a, b) is expected


def test_loose_and_strict_equality():
    assert loose_equals(True, 1)
    assert loose_equals(None, None)
    assert not loose_equals(None, "")
    assert loose_equals([1, 2], "1,2")
    assert loose_equals("", 0)

    assert not strict_equals(True, 1)
    assert strict_equals("a", "a")
    assert not strict_equals({}, {})


def test_parse_float_reads_leading_number():
    assert parse_float("12px") == 12.0
    assert parse_float(" -3.5e1 ") == -35.0
    assert parse_float("Infinity") == math.inf
    assert math.isnan(parse_float("abc"))
    assert math.isnan(parse_float(None))


def test_condition_config_dynamic_operand():
    config = {
        "operator": "greaterThan",
        "valueAMode": "dynamic",
        "valueAPath": "count",
        "valueBStatic": "3",
    }

    evaluation = evaluate_condition_config(config, {"count": 5})

    assert evaluation["a"] == 5
    assert evaluation["b"] == "3"
    assert evaluation["result"] is True
    assert evaluation["passWhen"] == "true"
    assert evaluation["shouldContinue"] is True


def test_condition_config_pass_when_false():
    config = {"operator": "equals", "valueAStatic": "x", "valueBStatic": "x", "passWhen": "false"}

    evaluation = evaluate_condition_config(config, None)

    assert evaluation["result"] is True
    assert evaluation["shouldContinue"] is False


def test_condition_config_dynamic_without_path_uses_whole_input():
    config = {"operator": "equals", "valueAMode": "dynamic", "valueBStatic": "ok"}

    assert evaluate_condition_config(config, "ok")["result"] is True
    assert evaluate_condition_config({}, None)["operator"] == "equals"
