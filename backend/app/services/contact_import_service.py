"""CSV import of contacts.

The header row is matched case-insensitively against contact fields.
`first_name` and `last_name` columns are mandatory; without them the whole
file is rejected before any row is read. Each row is then validated and
inserted on its own, so one bad row only counts as a failure.
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from backend.app.crud.crud_contact import CONTACT_FIELDS, contact_crud
from backend.app.db.gateway import Database
from backend.app.schemas.contact import ContactForm
from backend.app.schemas.forms import validate_form

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("first_name", "last_name")
IMPORTABLE_COLUMNS = set(CONTACT_FIELDS) - {"owner_id"}


class ContactImportError(ValueError):
    """The file cannot be imported at all."""


@dataclass
class ImportResult:
    imported: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.imported == 0:
            return f"No contacts imported ({self.failed} failed)" if self.failed else "No contacts imported"
        message = f"{self.imported} contacts imported successfully"
        if self.failed:
            message += f" ({self.failed} failed)"
        return message


def decode_upload(raw: bytes) -> str:
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    return raw.decode("utf-8", errors="replace")


def import_contacts(
    db: Database,
    content: str,
    *,
    created_by: int,
    owner_id: Optional[int] = None,
) -> ImportResult:
    reader = csv.reader(io.StringIO(content))
    header = next(reader, None)
    if not header:
        raise ContactImportError("The CSV file is empty")
    columns = [name.strip().lower().replace(" ", "_") for name in header]
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    if missing:
        raise ContactImportError("CSV must contain first_name and last_name columns")

    result = ImportResult()
    for line_number, row in enumerate(reader, start=2):
        if not any(cell.strip() for cell in row):
            continue
        if len(row) != len(columns):
            result.failed += 1
            result.errors.append(f"Line {line_number}: expected {len(columns)} columns, found {len(row)}")
            continue
        data = {name: value for name, value in zip(columns, row) if name in IMPORTABLE_COLUMNS}
        data["owner_id"] = owner_id
        form, errors = validate_form(ContactForm, data)
        if form is None:
            result.failed += 1
            result.errors.append(f"Line {line_number}: " + "; ".join(errors.values()))
            continue
        contact_id = contact_crud.create(db, data=form.model_dump(exclude={"tags"}), created_by=created_by)
        if contact_id is None:
            result.failed += 1
            result.errors.append(f"Line {line_number}: could not be saved")
        else:
            result.imported += 1
    logger.info("Contact import by user %s: %s imported, %s failed", created_by, result.imported, result.failed)
    return result
