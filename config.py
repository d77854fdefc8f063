import os
from urllib.parse import quote

from dotenv import load_dotenv

# Chargement des variables d'environnement
load_dotenv()

SERVICE_NAME = "users-service"

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

# PostgreSQL: DATABASE_URL prioritaire, sinon paramètres séparés
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASSWORD = os.getenv("DB_PASSWORD", "")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", 5432))
DB_DATABASE = os.getenv("DB_DATABASE", "crud_app")


def build_database_url(user, password, host, port, database):
    credentials = quote(user, safe="")
    if password:
        credentials += ":" + quote(password, safe="")
    return f"postgresql://{credentials}@{host}:{port}/{database}"


DATABASE_URL = os.getenv("DATABASE_URL") or build_database_url(
    DB_USER, DB_PASSWORD, DB_HOST, DB_PORT, DB_DATABASE
)

DB_POOL_MIN_SIZE = int(os.getenv("DB_POOL_MIN_SIZE", 1))
DB_POOL_MAX_SIZE = int(os.getenv("DB_POOL_MAX_SIZE", 10))
DB_INIT_SCHEMA = os.getenv("DB_INIT_SCHEMA", "true").lower() in ("1", "true", "yes")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_FILE = os.getenv("LOG_FILE", "logs.json")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

PUBLIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "public")
