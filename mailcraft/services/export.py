from __future__ import annotations

import csv
import io
import re
from urllib.parse import quote

import orjson

from mailcraft.db.enums import ExportFormatEnum
from mailcraft.schemas.campaigns import Campaign, Email

RULE = "-" * 40
CSV_HEADER = [
    "email_number",
    "day_offset",
    "send_timing",
    "type",
    "subject",
    "preview_text",
    "body",
    "status",
]
MEDIA_TYPES = {
    ExportFormatEnum.txt: "text/plain; charset=utf-8",
    ExportFormatEnum.json: "application/json",
    ExportFormatEnum.csv: "text/csv; charset=utf-8",
}

_WHITESPACE_RE = re.compile(r"\s+")


def send_timing(day_offset: int) -> str:
    return "Immediately" if day_offset == 0 else f"Day {day_offset}"


def export_filename(campaign: Campaign, export_format: ExportFormatEnum) -> str:
    return f"{_WHITESPACE_RE.sub('_', campaign.name)}_export.{export_format.value}"


def content_disposition(filename: str) -> str:
    ascii_name = filename.encode("ascii", "ignore").decode().replace('"', "") or "campaign_export"
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def _text_block(number: int, email: Email) -> str:
    return (
        f"\nEMAIL {number}: {email.subject}\n"
        f"Send Time: {send_timing(email.dayOffset)}\n"
        f"{RULE}\n"
        f"Subject: {email.subject}\n"
        f"Preview: {email.previewText}\n"
        "\n"
        f"{email.body}\n"
        "\n"
        f"{RULE}\n"
    )


def export_text(campaign: Campaign) -> str:
    return "\n".join(_text_block(index, email) for index, email in enumerate(campaign.emails, start=1))


def export_json(campaign: Campaign) -> str:
    return orjson.dumps(campaign.model_dump(mode="json"), option=orjson.OPT_INDENT_2).decode()


def export_csv(campaign: Campaign) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_HEADER)
    for index, email in enumerate(campaign.emails, start=1):
        writer.writerow(
            [
                index,
                email.dayOffset,
                send_timing(email.dayOffset),
                email.type,
                email.subject,
                email.previewText,
                email.body,
                email.status.value,
            ]
        )
    return buffer.getvalue()


def render_export(campaign: Campaign, export_format: ExportFormatEnum) -> str:
    if export_format == ExportFormatEnum.json:
        return export_json(campaign)
    if export_format == ExportFormatEnum.csv:
        return export_csv(campaign)
    return export_text(campaign)
