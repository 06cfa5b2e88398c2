import os

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./agritrust.db")
BASE_URL = os.getenv("BASE_URL", "http://localhost:8000")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CLIENT_ORIGINS = [o.strip() for o in os.getenv("CLIENT_ORIGINS", "*").split(",") if o.strip()]
RECORD_LIST_LIMIT = int(os.getenv("RECORD_LIST_LIMIT", "50"))
