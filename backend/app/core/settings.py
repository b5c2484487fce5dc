import os


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


class Settings:
    def __init__(self):
        self.app_name = os.getenv("CRM_SITENAME", "Flopy CRM")
        self.app_version = "1.0.0"
        self.environment = os.getenv("CRM_ENVIRONMENT", "development")
        self.secret_key = os.getenv("CRM_SECRET_KEY", "CHANGE_ME")
        self.SECRET_KEY = self.secret_key
        self.database_url = os.getenv("CRM_DATABASE_URL", "sqlite:///./flopy_crm.db")
        self.log_level = os.getenv("CRM_LOG_LEVEL", "INFO")

        # Session and security
        self.session_cookie_name = "crm_session"
        self.remember_cookie_name = "remember_token"
        self.remember_cookie_days = 30
        self.session_timeout = _env_int("CRM_SESSION_TIMEOUT", 1800)
        self.csrf_token_lifetime = _env_int("CRM_CSRF_TOKEN_LIFETIME", 3600)
        self.api_key_lifetime = _env_int("CRM_API_KEY_LIFETIME", 86400)
        self.min_password_length = _env_int("CRM_MIN_PASSWORD_LENGTH", 8)
        self.password_hash_cost = _env_int("CRM_PASSWORD_HASH_COST", 12)
        self.login_rate_limit = (5, 300)
        self.register_rate_limit = (3, 300)

        # Listing and display
        self.items_per_page = _env_int("CRM_ITEMS_PER_PAGE", 10)
        self.default_theme = "light"
        self.role_admin = 1
        self.role_agent = 2
        self.role_client = 3

        # Uploads
        self.upload_dir = os.getenv("CRM_UPLOAD_DIR", "./uploads")
        self.max_upload_size = _env_int("CRM_MAX_UPLOAD_SIZE", 5 * 1024 * 1024)
        self.allowed_image_extensions = ["jpg", "jpeg", "png", "gif"]
        self.allowed_extensions = [
            "jpg", "jpeg", "png", "gif", "pdf", "doc", "docx", "xls", "xlsx", "csv", "txt",
        ]

        self.cors_origins = [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
