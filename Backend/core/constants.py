JWT_ALGORITHM = "HS256"

UNNAMED_RECORD = "Unnamed Record"

API_NAME_PATTERN = r"[a-z][a-z0-9_]*"

APP_NAME = "Objects API"
APP_VERSION = "0.1.0"
