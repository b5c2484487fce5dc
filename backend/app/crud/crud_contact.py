"""CRUD and query operations for contacts and their tags."""

import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from backend.app.core.time import utc_now
from backend.app.crud.crud_reminder import reminder_crud
from backend.app.crud.query import (
    FilterBuilder,
    bind_limit,
    clean_filters,
    normalize_direction,
    normalize_sort,
    order_clause,
    parse_id_list,
)
from backend.app.db.gateway import Database, ParamType

logger = logging.getLogger(__name__)

CONTACT_FIELDS = [
    "first_name",
    "last_name",
    "email",
    "phone",
    "mobile",
    "company",
    "position",
    "website",
    "address",
    "city",
    "state",
    "zip",
    "country",
    "lead_source",
    "lead_status",
    "lead_score",
    "notes",
    "owner_id",
]

SORTABLE_FIELDS = {
    "first_name": "c.first_name",
    "last_name": "c.last_name",
    "email": "c.email",
    "company": "c.company",
    "created_at": "c.created_at",
    "lead_status": "c.lead_status",
    "lead_score": "c.lead_score",
}
DEFAULT_SORT = "created_at"


def _with_names(row: Dict[str, Any]) -> Dict[str, Any]:
    row["full_name"] = f"{row['first_name']} {row['last_name']}".strip()
    return row


class CRUDContact:
    def _filters(self, filters: Optional[Mapping[str, Any]]) -> FilterBuilder:
        """Build the contact predicate. Order: search, owner_id, lead_status, lead_source, tags."""
        filters = clean_filters(filters)
        builder = FilterBuilder()
        if "search" in filters:
            builder.add(
                "(c.first_name LIKE :search OR c.last_name LIKE :search OR c.email LIKE :search"
                " OR c.phone LIKE :search OR c.mobile LIKE :search OR c.company LIKE :search)",
                search=f"%{str(filters['search']).strip()}%",
            )
        if "owner_id" in filters:
            builder.add_typed("c.owner_id = :owner_id", "owner_id", filters["owner_id"], ParamType.INT)
        if "lead_status" in filters:
            builder.add("c.lead_status = :lead_status", lead_status=filters["lead_status"])
        if "lead_source" in filters:
            builder.add("c.lead_source = :lead_source", lead_source=filters["lead_source"])
        if "tags" in filters:
            raw_tags = filters["tags"]
            tag_ids = parse_id_list(raw_tags if isinstance(raw_tags, (list, tuple, set)) else [raw_tags])
            if tag_ids:
                builder.add_in(
                    "c.id IN (SELECT contact_id FROM contact_tags WHERE tag_id IN ({placeholders}))",
                    "tag",
                    tag_ids,
                )
        return builder

    def get_multi(
        self,
        db: Database,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = 10,
        offset: int = 0,
        sort_by: Optional[str] = DEFAULT_SORT,
        direction: Optional[str] = "DESC",
    ) -> List[Dict[str, Any]]:
        builder = self._filters(filters)
        sort_column = normalize_sort(sort_by, SORTABLE_FIELDS, DEFAULT_SORT)
        sql = (
            "SELECT c.*, u.name AS owner_name FROM contacts c "
            "LEFT JOIN users u ON c.owner_id = u.id "
            f"WHERE {builder.where} "
            f"{order_clause(sort_column, normalize_direction(direction), 'c.id')}"
        )
        if limit is not None:
            sql += " LIMIT :limit OFFSET :offset"
        db.prepare(sql)
        builder.bind(db)
        if limit is not None:
            bind_limit(db, limit, offset)
        contacts = [_with_names(row) for row in db.fetch_all()]
        self._attach_tags(db, contacts)
        return contacts

    def count(self, db: Database, *, filters: Optional[Mapping[str, Any]] = None) -> int:
        builder = self._filters(filters)
        db.prepare(f"SELECT COUNT(*) AS total FROM contacts c WHERE {builder.where}")
        builder.bind(db)
        return int(db.fetch_value(0))

    def _attach_tags(self, db: Database, contacts: List[Dict[str, Any]]) -> None:
        if not contacts:
            return
        builder = FilterBuilder().add_in(
            "ct.contact_id IN ({placeholders})", "contact", [contact["id"] for contact in contacts]
        )
        db.prepare(
            "SELECT ct.contact_id, t.id, t.name, t.color FROM tags t "
            "JOIN contact_tags ct ON ct.tag_id = t.id "
            f"WHERE {builder.where} ORDER BY t.name"
        )
        builder.bind(db)
        by_contact: Dict[int, List[Dict[str, Any]]] = {}
        for row in db.fetch_all():
            contact_id = row.pop("contact_id")
            by_contact.setdefault(contact_id, []).append(row)
        for contact in contacts:
            contact["tags"] = by_contact.get(contact["id"], [])

    def get(self, db: Database, *, contact_id: int) -> Optional[Dict[str, Any]]:
        db.prepare(
            "SELECT c.*, u.name AS owner_name, cb.name AS created_by_name FROM contacts c "
            "LEFT JOIN users u ON c.owner_id = u.id "
            "LEFT JOIN users cb ON c.created_by = cb.id "
            "WHERE c.id = :id"
        )
        db.bind("id", contact_id, ParamType.INT)
        contact = db.fetch_one()
        if contact is None:
            return None
        _with_names(contact)
        contact["tags"] = self.get_tags(db, contact_id=contact_id)
        return contact

    def create(self, db: Database, *, data: Mapping[str, Any], created_by: int) -> Optional[int]:
        """Insert a contact and its tag links atomically; None when the write fails."""
        columns = [field for field in CONTACT_FIELDS if field in data]
        column_sql = ", ".join(columns + ["created_by"])
        value_sql = ", ".join(f":{field}" for field in columns + ["created_by"])
        try:
            with db.transaction():
                db.prepare(f"INSERT INTO contacts ({column_sql}) VALUES ({value_sql})")
                for field in columns:
                    db.bind(field, data[field])
                db.bind("created_by", created_by, ParamType.INT)
                db.execute()
                contact_id = db.last_insert_id()
                for tag_id in data.get("tags") or []:
                    self.add_tag_link(db, contact_id=contact_id, tag_id=tag_id)
        except SQLAlchemyError:
            logger.exception("Failed to create contact")
            return None
        return contact_id

    def update(self, db: Database, *, contact_id: int, data: Mapping[str, Any]) -> bool:
        """Update the supplied fields; tag links are replaced only when `tags` is given."""
        columns = [field for field in CONTACT_FIELDS if field in data]
        assignments = ", ".join(f"{field} = :{field}" for field in columns + ["updated_at"])
        try:
            with db.transaction():
                db.prepare(f"UPDATE contacts SET {assignments} WHERE id = :id")
                for field in columns:
                    db.bind(field, data[field])
                db.bind("updated_at", utc_now())
                db.bind("id", contact_id, ParamType.INT)
                db.execute()
                if "tags" in data and data["tags"] is not None:
                    self.delete_tag_links(db, contact_id=contact_id)
                    for tag_id in data["tags"]:
                        self.add_tag_link(db, contact_id=contact_id, tag_id=tag_id)
        except SQLAlchemyError:
            logger.exception("Failed to update contact %s", contact_id)
            return False
        return True

    def delete(self, db: Database, *, contact_id: int) -> bool:
        """Delete a contact; reminders pointing at it or its cascaded children go with it."""
        try:
            with db.transaction():
                reminder_crud.delete_for_contact(db, contact_id=contact_id)
                db.prepare("DELETE FROM contacts WHERE id = :id")
                db.bind("id", contact_id, ParamType.INT)
                db.execute()
                deleted = db.row_count() > 0
        except SQLAlchemyError:
            logger.exception("Failed to delete contact %s", contact_id)
            return False
        return deleted

    def update_avatar(self, db: Database, *, contact_id: int, avatar: str) -> bool:
        db.prepare("UPDATE contacts SET avatar = :avatar, updated_at = :now WHERE id = :id")
        db.bind("avatar", avatar)
        db.bind("now", utc_now())
        db.bind("id", contact_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def get_tags(self, db: Database, *, contact_id: int) -> List[Dict[str, Any]]:
        db.prepare(
            "SELECT t.id, t.name, t.color FROM tags t "
            "JOIN contact_tags ct ON ct.tag_id = t.id "
            "WHERE ct.contact_id = :contact_id ORDER BY t.name"
        )
        db.bind("contact_id", contact_id, ParamType.INT)
        return db.fetch_all()

    def add_tag_link(self, db: Database, *, contact_id: int, tag_id: int) -> bool:
        """Link a tag to a contact, ignoring an existing link."""
        db.prepare(
            "INSERT INTO contact_tags (contact_id, tag_id) "
            "SELECT :contact_id, :tag_id WHERE NOT EXISTS "
            "(SELECT 1 FROM contact_tags WHERE contact_id = :contact_id AND tag_id = :tag_id)"
        )
        db.bind("contact_id", contact_id, ParamType.INT)
        db.bind("tag_id", tag_id, ParamType.INT)
        db.execute()
        return db.row_count() > 0

    def delete_tag_links(self, db: Database, *, contact_id: int) -> None:
        db.prepare("DELETE FROM contact_tags WHERE contact_id = :contact_id")
        db.bind("contact_id", contact_id, ParamType.INT)
        db.execute()

    def get_all_tags(self, db: Database) -> List[Dict[str, Any]]:
        db.prepare(
            "SELECT t.id, t.name, t.color, COUNT(ct.contact_id) AS contact_count FROM tags t "
            "LEFT JOIN contact_tags ct ON ct.tag_id = t.id "
            "GROUP BY t.id, t.name, t.color ORDER BY t.name"
        )
        return db.fetch_all()

    def create_tag(self, db: Database, *, name: str, color: str, created_by: int) -> int:
        db.prepare("INSERT INTO tags (name, color, created_by) VALUES (:name, :color, :created_by)")
        db.bind("name", name)
        db.bind("color", color)
        db.bind("created_by", created_by, ParamType.INT)
        db.execute()
        return db.last_insert_id()

    def get_tag_by_name(self, db: Database, *, name: str) -> Optional[Dict[str, Any]]:
        db.prepare("SELECT id, name, color FROM tags WHERE name = :name")
        db.bind("name", name)
        return db.fetch_one()

    def tag_ids_exist(self, db: Database, *, tag_ids: List[int]) -> bool:
        if not tag_ids:
            return True
        unique_ids = sorted(set(tag_ids))
        builder = FilterBuilder().add_in("id IN ({placeholders})", "tag", unique_ids)
        db.prepare(f"SELECT COUNT(*) AS total FROM tags WHERE {builder.where}")
        builder.bind(db)
        return int(db.fetch_value(0)) == len(unique_ids)

    def get_lead_sources(self, db: Database) -> List[str]:
        db.prepare(
            "SELECT DISTINCT lead_source FROM contacts "
            "WHERE lead_source IS NOT NULL AND lead_source <> '' ORDER BY lead_source"
        )
        return [row["lead_source"] for row in db.fetch_all()]

    def get_lead_statuses(self, db: Database) -> List[str]:
        db.prepare(
            "SELECT DISTINCT lead_status FROM contacts "
            "WHERE lead_status IS NOT NULL AND lead_status <> '' ORDER BY lead_status"
        )
        return [row["lead_status"] for row in db.fetch_all()]

    def get_recent(self, db: Database, *, limit: int = 5) -> List[Dict[str, Any]]:
        return self.get_multi(db, limit=limit, offset=0, sort_by="created_at", direction="DESC")

    def count_by_status(self, db: Database) -> Dict[str, int]:
        db.prepare(
            "SELECT lead_status, COUNT(*) AS count FROM contacts "
            "WHERE lead_status IS NOT NULL AND lead_status <> '' "
            "GROUP BY lead_status ORDER BY count DESC, lead_status"
        )
        return {row["lead_status"]: int(row["count"]) for row in db.fetch_all()}

    def count_by_source(self, db: Database) -> Dict[str, int]:
        db.prepare(
            "SELECT lead_source, COUNT(*) AS count FROM contacts "
            "WHERE lead_source IS NOT NULL AND lead_source <> '' "
            "GROUP BY lead_source ORDER BY count DESC, lead_source"
        )
        return {row["lead_source"]: int(row["count"]) for row in db.fetch_all()}

    def count_by_owner(self, db: Database, *, role_id: int) -> List[Dict[str, Any]]:
        """Contact totals for every user with `role_id`, including users with none."""
        db.prepare(
            "SELECT u.id, u.name, COUNT(c.id) AS count FROM users u "
            "LEFT JOIN contacts c ON c.owner_id = u.id "
            "WHERE u.role_id = :role_id "
            "GROUP BY u.id, u.name ORDER BY count DESC, u.name"
        )
        db.bind("role_id", role_id, ParamType.INT)
        return db.fetch_all()


contact_crud = CRUDContact()
