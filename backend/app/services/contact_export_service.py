"""CSV export of contacts, UTF-8 with a byte-order mark for spreadsheet tools."""

import csv
import io
from datetime import date
from typing import Iterable, Mapping

EXPORT_COLUMNS = [
    ("First Name", "first_name"),
    ("Last Name", "last_name"),
    ("Email", "email"),
    ("Phone", "phone"),
    ("Mobile", "mobile"),
    ("Company", "company"),
    ("Position", "position"),
    ("Website", "website"),
    ("Address", "address"),
    ("City", "city"),
    ("State", "state"),
    ("Zip", "zip"),
    ("Country", "country"),
    ("Lead Source", "lead_source"),
    ("Lead Status", "lead_status"),
    ("Lead Score", "lead_score"),
    ("Notes", "notes"),
]


def build_contacts_csv(contacts: Iterable[Mapping]) -> bytes:
    output = io.StringIO()
    writer = csv.writer(output, lineterminator="\n")
    writer.writerow([header for header, _ in EXPORT_COLUMNS])
    for contact in contacts:
        writer.writerow(["" if contact.get(key) is None else contact.get(key) for _, key in EXPORT_COLUMNS])
    csv_content = "\ufeff" + output.getvalue()
    output.close()
    return csv_content.encode("utf-8")


def export_filename(today: date) -> str:
    return f"contacts_export_{today.isoformat()}.csv"
