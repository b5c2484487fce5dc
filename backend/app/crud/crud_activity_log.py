from typing import Any, Dict, List, Optional

from backend.app.crud.query import bind_limit
from backend.app.db.gateway import Database, ParamType


class CRUDActivityLog:
    def create(
        self,
        db: Database,
        *,
        user_id: Optional[int],
        action: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        description: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> int:
        db.prepare(
            "INSERT INTO activity_log (user_id, action, entity_type, entity_id, description, ip_address, user_agent) "
            "VALUES (:user_id, :action, :entity_type, :entity_id, :description, :ip_address, :user_agent)"
        )
        db.bind("user_id", user_id)
        db.bind("action", action)
        db.bind("entity_type", entity_type)
        db.bind("entity_id", entity_id)
        db.bind("description", description)
        db.bind("ip_address", ip_address)
        db.bind("user_agent", (user_agent or "")[:255] or None)
        db.execute()
        return db.last_insert_id()

    def get_recent(self, db: Database, *, limit: int = 10, user_id: Optional[int] = None) -> List[Dict[str, Any]]:
        sql = "SELECT a.*, u.name AS user_name FROM activity_log a LEFT JOIN users u ON a.user_id = u.id"
        if user_id is not None:
            sql += " WHERE a.user_id = :user_id"
        db.prepare(sql + " ORDER BY a.created_at DESC, a.id DESC LIMIT :limit OFFSET :offset")
        if user_id is not None:
            db.bind("user_id", user_id, ParamType.INT)
        bind_limit(db, limit, 0)
        return db.fetch_all()


activity_log_crud = CRUDActivityLog()
