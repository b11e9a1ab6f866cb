"""
Tests for benchmark case file loading

Covers question/answer CSV sheets, support ticket exports and JSON case lists.
"""

import json

import pytest

from hybrid_rag.core.errors import CaseFileError
from hybrid_rag.infrastructure.cases.case_files import (
    MISSING_ANSWER,
    MISSING_HISTORY,
    TICKET_CATEGORY,
    is_system_id,
    load_benchmark_csv,
    load_cases,
    load_ticket_csv,
    strip_html,
)

BENCHMARK_CSV = (
    "ردیف,عنوان سوال,پاسخ کامل\n"
    '1,چطور رمز عبور را ریست کنم؟,"<b>از گزینه</b>&nbsp;فراموشی رمز"\n'
    "2,؟,پاسخ\n"
    "\n"
    "3,تاخیر سفارش,\n"
    "4,کوتاه\n"
)

TICKET_CSV = (
    "TicketNumber,Title,Body\n"
    '100,فراموشی رمز,"<p>از گزینه فراموشی رمز استفاده کنید</p>"\n'
    "100,فراموشی رمز,3f2504e0-4f89-11d3-9a0c-0305e82c3301\n"
    "100,فراموشی رمز,رمز عبور را فراموش کرده‌ام\n"
    ",بدون شماره,این ردیف شماره تیکت ندارد\n"
    "200,خطای 4021 هنگام پرداخت,ok\n"
    "200,خطای 4021 هنگام پرداخت,خطای 4021 هنگام پرداخت\n"
)


@pytest.fixture
def write(tmp_path):
    def _write(name, text, encoding="utf-8"):
        path = tmp_path / name
        path.write_text(text, encoding=encoding)
        return path
    return _write


class TestHelpers:

    def test_strip_html(self):
        assert strip_html("<p>a&lt;b</p>\n\n c &amp; d") == "a<b c & d"
        assert strip_html("") == ""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("3F2504E0-4F89-11D3-9A0C-0305E82C3301", True),
            (" abcdef123456 ", True),
            ("abc123", False),
            ("رمز عبور", False),
            ("", False),
        ],
    )
    def test_is_system_id(self, text, expected):
        assert is_system_id(text) is expected


class TestBenchmarkCsv:

    def test_rows_become_cases(self, write):
        cases = load_benchmark_csv(write("cases.csv", BENCHMARK_CSV))

        assert [c.id for c in cases] == ["custom-1", "custom-3"]
        assert cases[0].question == "چطور رمز عبور را ریست کنم؟"
        assert cases[0].ground_truth == "از گزینه فراموشی رمز"
        assert cases[1].ground_truth == MISSING_ANSWER
        assert all(not c.is_ticket for c in cases)

    def test_header_matched_by_substring(self, write):
        path = write("cases.csv", "Question (fa),Ground Truth answer\nرمز عبور,بازنشانی\n")

        cases = load_benchmark_csv(path)

        assert [(c.question, c.ground_truth) for c in cases] == [("رمز عبور", "بازنشانی")]

    def test_missing_columns(self, write):
        with pytest.raises(CaseFileError):
            load_benchmark_csv(write("cases.csv", "a,b\n1,2\n"))

    def test_header_only_file_is_invalid(self, write):
        with pytest.raises(ValueError):
            load_benchmark_csv(write("cases.csv", "عنوان سوال,پاسخ کامل\n"))


class TestTicketCsv:

    def test_grouped_by_ticket_with_last_message_as_question(self, write):
        cases = load_ticket_csv(write("tickets.csv", TICKET_CSV))

        assert [c.id for c in cases] == ["ticket-100", "ticket-200"]
        assert all(c.is_ticket and c.category == TICKET_CATEGORY for c in cases)

        first = cases[0]
        assert first.question == "موضوع: فراموشی رمز\nشرح تیکت: رمز عبور را فراموش کرده‌ام"
        assert first.ground_truth == "از گزینه فراموشی رمز استفاده کنید"

    def test_title_equal_to_body_and_short_history(self, write):
        cases = load_ticket_csv(write("tickets.csv", TICKET_CSV))

        second = cases[1]
        assert second.question == "خطای 4021 هنگام پرداخت"
        assert second.ground_truth == MISSING_HISTORY

    def test_history_joined_in_order(self, write):
        text = (
            "id,body\n"
            "7,پاسخ اول پشتیبانی\n"
            "7,پاسخ دوم پشتیبانی\n"
            "7,سوال نهایی کاربر\n"
        )

        (case,) = load_ticket_csv(write("tickets.csv", text))

        assert case.question == "سوال نهایی کاربر"
        assert case.ground_truth == "پاسخ اول پشتیبانی\n---\nپاسخ دوم پشتیبانی"

    def test_missing_body_column(self, write):
        with pytest.raises(CaseFileError):
            load_ticket_csv(write("tickets.csv", "TicketNumber,Title\n1,x\n"))


class TestLoadCases:

    def test_ticket_export_detected_by_headers(self, write):
        cases = load_cases(write("export.csv", TICKET_CSV, encoding="utf-8-sig"))

        assert [c.id for c in cases] == ["ticket-100", "ticket-200"]

    def test_other_csv_read_as_question_sheet(self, write):
        cases = load_cases(write("cases.CSV", BENCHMARK_CSV))

        assert [c.id for c in cases] == ["custom-1", "custom-3"]

    @pytest.mark.parametrize("wrapped", [True, False])
    def test_json_case_list(self, write, wrapped):
        items = [{"id": 1, "question": "رمز عبور", "groundTruth": "بازنشانی"}]
        data = {"cases": items} if wrapped else items

        (case,) = load_cases(write("cases.json", json.dumps(data, ensure_ascii=False)))

        assert case.ground_truth == "بازنشانی"
        assert case.category == "general"
