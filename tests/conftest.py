import os

# Applied before the application modules read their settings
os.environ.setdefault("CRM_DATABASE_URL", "sqlite:///./test_flopy_crm.db")
os.environ.setdefault("CRM_PASSWORD_HASH_COST", "4")
os.environ.setdefault("CRM_UPLOAD_DIR", "./test_uploads")
