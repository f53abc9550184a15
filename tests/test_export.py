import csv
import io
from datetime import datetime, timezone

import orjson

from mailcraft.db.enums import ExportFormatEnum
from mailcraft.schemas.campaigns import Campaign, Email
from mailcraft.services.export import (
    CSV_HEADER,
    RULE,
    content_disposition,
    export_filename,
    render_export,
    send_timing,
)


def _campaign(name: str = "Spring Launch") -> Campaign:
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    return Campaign(
        id="cmp-1",
        name=name,
        goal="launch",
        createdAt=now,
        lastEditedAt=now,
        emails=[
            Email(id="e1", dayOffset=0, type="Teaser", subject="Something is coming", previewText="Stay tuned", body="Hi,\nSoon."),
            Email(id="e2", dayOffset=3, type="Launch", subject="It's here", previewText="Open now", body="Buy, today"),
        ],
    )


def test_send_timing():
    assert send_timing(0) == "Immediately"
    assert send_timing(4) == "Day 4"


def test_text_export_layout():
    text = render_export(_campaign(), ExportFormatEnum.txt)
    expected_first = (
        "\nEMAIL 1: Something is coming\n"
        "Send Time: Immediately\n"
        f"{RULE}\n"
        "Subject: Something is coming\n"
        "Preview: Stay tuned\n"
        "\n"
        "Hi,\nSoon.\n"
        "\n"
        f"{RULE}\n"
    )
    assert text.startswith(expected_first)
    assert "\nEMAIL 2: It's here\nSend Time: Day 3\n" in text
    assert text.count(RULE) == 4


def test_csv_export_quotes_fields():
    rows = list(csv.reader(io.StringIO(render_export(_campaign(), ExportFormatEnum.csv))))
    assert rows[0] == CSV_HEADER
    assert rows[1][:4] == ["1", "0", "Immediately", "Teaser"]
    assert rows[1][6] == "Hi,\nSoon."
    assert rows[2][2] == "Day 3"
    assert rows[2][6] == "Buy, today"
    assert rows[2][7] == "draft"


def test_json_export_is_the_campaign_document():
    payload = orjson.loads(render_export(_campaign(), ExportFormatEnum.json))
    assert payload["id"] == "cmp-1"
    assert payload["name"] == "Spring Launch"
    assert [email["dayOffset"] for email in payload["emails"]] == [0, 3]


def test_export_filename_replaces_whitespace():
    assert export_filename(_campaign("Spring  Launch 2026"), ExportFormatEnum.csv) == "Spring_Launch_2026_export.csv"


def test_content_disposition_keeps_unicode_names():
    header = content_disposition("Café_\"Promo\"_export.txt")
    assert header.startswith('attachment; filename="Caf_Promo_export.txt"')
    assert "filename*=UTF-8''Caf%C3%A9_%22Promo%22_export.txt" in header
