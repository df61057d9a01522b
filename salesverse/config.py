"""
Configuration et utilitaires partagés
"""

import os
import uuid
from datetime import datetime, timezone, timedelta
from pathlib import Path

from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'salesverse_crm')

CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

# Lien envoyé dans la notification d'onboarding
APP_LOGIN_URL = os.environ.get('APP_LOGIN_URL', 'https://salesverse.com/login')

# Pagination
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def get_database(mongo_url: str = MONGO_URL, db_name: str = DB_NAME):
    """Retourne (client, db) motor. Le client se connecte à la première requête."""
    client = AsyncIOMotorClient(mongo_url)
    return client, client[db_name]


# ==================== HELPERS ====================

def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    """Identifiant applicatif (stocké dans le champ `id`, jamais `_id`)"""
    return str(uuid.uuid4())


def is_valid_id(value) -> bool:
    """Vérifie qu'un identifiant a le format uuid"""
    if not isinstance(value, str):
        return False
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def day_bounds(now: datetime = None) -> tuple[str, str]:
    """Début du jour courant et du lendemain (UTC), en ISO"""
    now = now or datetime.now(timezone.utc)
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start.isoformat(), (start + timedelta(days=1)).isoformat()


def strip_mongo_id(doc):
    """
    Retire le _id d'un document renvoyé par find_one_and_update.
    (projection={"_id": 0} y est évité : le document est relu après écriture)
    """
    if doc is not None:
        doc.pop("_id", None)
    return doc
