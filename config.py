from pathlib import Path
from dotenv import load_dotenv
import os

load_dotenv()

BASE_DIR = Path(__file__).parent

# Data directory (gitignored)
DATA_DIR = BASE_DIR / "data"
DATA_DIR.mkdir(exist_ok=True)

# Tabular store: "sql" (local SQLAlchemy tables) or "google" (Google Sheets)
STORE_BACKEND: str = os.getenv("STORE_BACKEND", "sql")
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR}/sheets.db")

# Google Sheets
GOOGLE_SPREADSHEET_ID: str = os.getenv("GOOGLE_SPREADSHEET_ID", "")
GOOGLE_SERVICE_ACCOUNT_JSON: str = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON", "")

# Sheet names
SIGHTINGS_SHEET: str = os.getenv("SIGHTINGS_SHEET", "Baza")
DEPARTURES_SHEET: str = os.getenv("DEPARTURES_SHEET", "Polasci")
YESTERDAY_SHEET: str = os.getenv("YESTERDAY_SHEET", "Juce")
USERS_SHEET: str = os.getenv("USERS_SHEET", "Users")

# Live vehicle feed (GTFS-realtime as JSON or protobuf)
FEED_URL: str = os.getenv("FEED_URL", "https://rt.buslogic.baguette.pirnet.si/beograd/rt.json")
FEED_TIMEOUT_SECONDS: float = float(os.getenv("FEED_TIMEOUT_SECONDS", "15"))
# Optional JSON file mapping stop_id -> stop name, used to label directions
STOP_NAMES_PATH: str = os.getenv("STOP_NAMES_PATH", str(DATA_DIR / "stop_names.json"))

# All calendar dates in the sheets are local to this zone
LOCAL_TIMEZONE: str = os.getenv("LOCAL_TIMEZONE", "Europe/Belgrade")

# Scheduler (0 disables the job)
INGEST_POLL_SECONDS: int = int(os.getenv("INGEST_POLL_SECONDS", "60"))
RECONCILE_POLL_SECONDS: int = int(os.getenv("RECONCILE_POLL_SECONDS", "300"))

# Auth
TOKEN_TTL_DAYS: int = int(os.getenv("TOKEN_TTL_DAYS", "7"))
INGEST_API_KEY: str = os.getenv("INGEST_API_KEY", "")

# API
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))
CORS_ORIGINS: list[str] = [
    origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
]
