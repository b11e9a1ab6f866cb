"""Benchmark case files: JSON case lists, question/answer CSVs and ticket CSVs."""
import csv
import json
import logging
import re
from pathlib import Path

from hybrid_rag.core.errors import CaseFileError
from hybrid_rag.core.models.benchmark import BenchmarkCase

logger = logging.getLogger(__name__)

QUESTION_HEADERS = ("عنوان سوال", "Question", "چالش")
ANSWER_HEADERS = ("پاسخ کامل", "Ground Truth", "مرجع")

TICKET_HEADERS = ("ticketnumber", "ticketnum", "id", "شماره تیکت")
BODY_HEADERS = ("body", "description", "text", "متن")
TITLE_HEADERS = ("title", "subject", "عنوان")

CSV_CATEGORY = "تست سفارشی (CSV)"
TICKET_CATEGORY = "تحلیل تیکت پشتیبانی"
MISSING_ANSWER = "پاسخی درج نشده است"
MISSING_HISTORY = "پاسخ تاریخی یافت نشد"
RESPONSE_SEPARATOR = "\n---\n"

_GUID = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I)
_HEX_ID = re.compile(r"^[0-9a-f]{12,64}$", re.I)
_TAG = re.compile(r"<[^>]*>")


def strip_html(html: str) -> str:
    """Drop tags, decode the common entities and collapse whitespace."""
    if not html:
        return ""
    text = _TAG.sub(" ", html)
    text = text.replace("&nbsp;", " ").replace("&zwnj;", " ")
    text = text.replace("&lt;", "<").replace("&gt;", ">").replace("&amp;", "&")
    return " ".join(text.split())


def is_system_id(text: str) -> bool:
    """True for GUIDs and bare hex identifiers that carry no ticket text."""
    if not text:
        return False
    text = text.strip()
    return bool(_GUID.match(text) or _HEX_ID.match(text))


def read_rows(path: str | Path) -> list[list[str]]:
    """Read CSV rows, skipping blank lines. Tolerates a UTF-8 BOM."""
    with open(path, encoding="utf-8-sig", newline="") as f:
        rows = [row for row in csv.reader(f) if row]
    if len(rows) < 2:
        raise CaseFileError("فایل خالی یا نامعتبر است")
    return rows


def _cell(row: list[str], index: int) -> str:
    return row[index] if 0 <= index < len(row) else ""


def _exact_index(headers: list[str], candidates: tuple[str, ...]) -> int:
    for candidate in candidates:
        if candidate in headers:
            return headers.index(candidate)
    return -1


def _ticket_columns(header_row: list[str]) -> tuple[int, int, int]:
    headers = [h.strip().lower() for h in header_row]
    return (
        _exact_index(headers, TICKET_HEADERS),
        _exact_index(headers, BODY_HEADERS),
        _exact_index(headers, TITLE_HEADERS),
    )


def is_ticket_export(header_row: list[str]) -> bool:
    ticket_idx, body_idx, _ = _ticket_columns(header_row)
    return ticket_idx != -1 and body_idx != -1


def parse_benchmark_rows(rows: list[list[str]]) -> list[BenchmarkCase]:
    """Question/answer sheet: one case per row with a usable question."""
    headers = [h.strip() for h in rows[0]]

    def find(candidates: tuple[str, ...]) -> int:
        for i, header in enumerate(headers):
            if any(c in header for c in candidates):
                return i
        return -1

    question_idx = find(QUESTION_HEADERS)
    answer_idx = find(ANSWER_HEADERS)
    if question_idx == -1 or answer_idx == -1:
        raise CaseFileError("ستون‌های الزامی یافت نشد.")

    cases = []
    for i, row in enumerate(rows[1:], start=1):
        if len(row) <= max(question_idx, answer_idx):
            continue
        question = strip_html(row[question_idx]).strip()
        ground_truth = strip_html(row[answer_idx]).strip()
        if len(question) < 2:
            continue
        cases.append(
            BenchmarkCase(
                id=f"custom-{i}",
                question=question,
                ground_truth=ground_truth or MISSING_ANSWER,
                category=CSV_CATEGORY,
            )
        )
    return cases


def parse_ticket_rows(rows: list[list[str]]) -> list[BenchmarkCase]:
    """Support ticket export: one case per ticket.

    Rows are grouped by ticket number. The last message of a ticket is the
    question; the earlier ones are the historical support answer.
    """
    ticket_idx, body_idx, title_idx = _ticket_columns(rows[0])
    if ticket_idx == -1 or body_idx == -1:
        raise CaseFileError("ستون‌های TicketNumber یا Body یافت نشد.")

    groups: dict[str, list[tuple[str, str]]] = {}
    for row in rows[1:]:
        ticket = _cell(row, ticket_idx).strip()
        if not ticket:
            continue
        body = strip_html(_cell(row, body_idx)).strip()
        title = strip_html(_cell(row, title_idx)).strip() if title_idx != -1 else ""
        if len(body) < 2 or is_system_id(body):
            continue
        groups.setdefault(ticket, []).append((body, title))

    cases = []
    for ticket, messages in groups.items():
        body, title = messages[-1]
        history = RESPONSE_SEPARATOR.join(b for b, _ in messages[:-1] if len(b) > 5)
        question = body
        if title and title != body:
            question = f"موضوع: {title}\nشرح تیکت: {body}"
        cases.append(
            BenchmarkCase(
                id=f"ticket-{ticket}",
                question=question,
                ground_truth=history or MISSING_HISTORY,
                category=TICKET_CATEGORY,
            )
        )
    return cases


def load_benchmark_csv(path: str | Path) -> list[BenchmarkCase]:
    return parse_benchmark_rows(read_rows(path))


def load_ticket_csv(path: str | Path) -> list[BenchmarkCase]:
    return parse_ticket_rows(read_rows(path))


def load_cases(path: str | Path) -> list[BenchmarkCase]:
    """Load cases from JSON or CSV.

    A CSV with ticket number and body columns is read as a ticket export,
    any other CSV as a question/answer sheet.
    """
    path = Path(path)
    if path.suffix.lower() == ".csv":
        rows = read_rows(path)
        if is_ticket_export(rows[0]):
            cases = parse_ticket_rows(rows)
        else:
            cases = parse_benchmark_rows(rows)
    else:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data.get("cases", [])
        cases = [BenchmarkCase.from_dict(item) for item in data]

    logger.info(f"Loaded {len(cases)} cases from {path.name}")
    return cases
