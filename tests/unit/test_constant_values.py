from datetime import datetime, timedelta, timezone

import pytest

from workflow_editor.core.workflow.constant_values import (
    calculate_datetime,
    constant_output,
    html_to_plaintext,
)

NOW = datetime(2024, 3, 15, 10, 30, 45, 123000, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "option, expected",
    [
        ("now", NOW),
        ("today", datetime(2024, 3, 15, tzinfo=timezone.utc)),
        ("tomorrow", datetime(2024, 3, 16, tzinfo=timezone.utc)),
        ("end_of_day", datetime(2024, 3, 15, 23, 59, 59, tzinfo=timezone.utc)),
        ("in_30_min", NOW + timedelta(minutes=30)),
        ("in_1_hour", NOW + timedelta(hours=1)),
        ("in_2_hours", NOW + timedelta(hours=2)),
        ("next_week", NOW + timedelta(days=7)),
        ("next_month", NOW + timedelta(days=30)),
        ("unknown", NOW),
    ],
)
def test_datetime_options(option, expected):
    assert calculate_datetime({"datetimeOption": option}, now=NOW) == expected


def test_custom_offset_defaults_to_one_hour():
    assert calculate_datetime({"datetimeOption": "custom_offset"}, now=NOW) == NOW + timedelta(hours=1)
    assert calculate_datetime(
        {"datetimeOption": "custom_offset", "offsetAmount": 3, "offsetUnit": "days"}, now=NOW
    ) == NOW + timedelta(days=3)


def test_fixed_datetime():
    fixed = calculate_datetime({"datetimeOption": "fixed", "fixedDateTime": "2024-12-25T09:00:00Z"}, now=NOW)
    naive = calculate_datetime({"datetimeOption": "fixed", "fixedDateTime": "2024-12-25T09:00:00"}, now=NOW)

    assert fixed == datetime(2024, 12, 25, 9, tzinfo=timezone.utc)
    assert naive == fixed
    assert calculate_datetime({"datetimeOption": "fixed"}, now=NOW) == NOW
    assert calculate_datetime({"datetimeOption": "fixed", "fixedDateTime": "내일"}, now=NOW) == NOW


def test_constant_output_by_value_type():
    assert constant_output({"value": 42}) == 42
    assert constant_output({"valueType": "datetime", "datetimeOption": "in_1_hour"}, now=NOW) == (
        "2024-03-15T11:30:45.123000+00:00"
    )
    # html 출력 형식은 원문 그대로
    assert constant_output({"valueType": "richtext", "value": "<p>hi</p>"}) == "<p>hi</p>"
    assert constant_output({"valueType": "richtext", "outputFormat": "plaintext", "value": "<p>hi</p>"}) == "hi"


def test_html_to_plaintext():
    source = (
        "<h1>공지</h1>"
        "<p>안녕하세요 <strong>김</strong>님, "
        '<span data-type="mention" data-id="input1">@이름</span> &amp; 팀</p>'
        "<ul><li>첫째</li><li>둘째</li></ul>"
        "<ol><li>a</li><li>b</li></ol>"
        "<p>줄<br>바꿈</p>"
    )

    assert html_to_plaintext(source) == (
        "공지\n\n"
        "안녕하세요 김님, @이름 & 팀\n\n"
        "• 첫째\n• 둘째\n"
        "1. a\n2. b\n"
        "줄\n바꿈"
    )
    assert html_to_plaintext(None) == ""
