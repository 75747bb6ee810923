import os
from dotenv import load_dotenv

# Load environment variables from this file's directory so running from repo root still works
ENV_PATH = os.path.join(os.path.dirname(__file__), ".env")
load_dotenv(dotenv_path=ENV_PATH)

# Storage
DATA_DIR = os.getenv("UMS_DATA_DIR", "data")
BACKUP_DIR = os.getenv("UMS_BACKUP_DIR", "backups")

# Logging
LOG_LEVEL = os.getenv("UMS_LOG_LEVEL", "INFO").upper()

# Default administrator synthesized when the users file is empty
DEFAULT_ADMIN_ID = "admin001"
DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = os.getenv("UMS_ADMIN_PASSWORD", "admin123")
DEFAULT_ADMIN_NAME = "System Administrator"
DEFAULT_ADMIN_EMAIL = "admin@university.edu"

# Password hashing (scrypt cost parameters)
SCRYPT_N = int(os.getenv("UMS_SCRYPT_N", "16384"))
SCRYPT_R = 8
SCRYPT_P = 1
