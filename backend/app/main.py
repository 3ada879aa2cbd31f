# backend/app/main.py
from backend.app.factory import create_app
from inbox_digest.config.logs import configure_logging
from inbox_digest.config.settings import load_settings

settings = load_settings()
configure_logging(settings.log_level)

app = create_app(settings)
