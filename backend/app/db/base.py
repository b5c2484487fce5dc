from backend.app.db.base_class import Base

# Import models to register metadata for Base.metadata.create_all
from backend.app.models.role import Role  # noqa: F401
from backend.app.models.user import User  # noqa: F401
from backend.app.models.contact import Contact, Tag, contact_tags  # noqa: F401
from backend.app.models.interaction import Interaction  # noqa: F401
from backend.app.models.deal import Deal  # noqa: F401
from backend.app.models.event import Event  # noqa: F401
from backend.app.models.file import File  # noqa: F401
from backend.app.models.reminder import Reminder  # noqa: F401
from backend.app.models.activity_log import ActivityLog  # noqa: F401
from backend.app.models.setting import Setting  # noqa: F401
