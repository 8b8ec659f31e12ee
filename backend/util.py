import os
import threading
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from haversine import haversine


load_dotenv()

# --------------------------------------------------
# APP CONFIG
# --------------------------------------------------
DATABASE_URL = os.getenv("DATABASE_URL")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# "client": trust the insideZone flag sent by the mobile app
# "server": derive it from the user's stored zone
ZONE_STATUS_SOURCE = os.getenv("ZONE_STATUS_SOURCE", "client").strip().lower()

if not DATABASE_URL:
    raise ValueError("DATABASE_URL environment variable must be set")

if ZONE_STATUS_SOURCE not in ("client", "server"):
    raise ValueError("ZONE_STATUS_SOURCE must be 'client' or 'server'")

# --------------------------------------------------
# DATABASE (PostgreSQL in production, SQLite in tests)
# --------------------------------------------------
# pool_pre_ping / pool_recycle keep long-lived pooled connections usable when
# the server drops idle ones.
engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    pool_recycle=1800,  # recycle connections every 30 minutes
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# --------------------------------------------------
# ZONE GEOMETRY (circle only)
# --------------------------------------------------
def within_zone(center_lat: float, center_lng: float, radius_m: float, lat: float, lng: float) -> bool:
    """Return True when (lat, lng) lies inside the circle, edge included."""
    distance_km = haversine((center_lat, center_lng), (lat, lng))
    return distance_km <= (radius_m / 1000.0)


# --------------------------------------------------
# PER-USER LOCKS
# --------------------------------------------------
# Sync routes run in a thread pool, so two reports for the same user can be
# handled at once. The lock covers this process only; the row lock taken in
# transitions.report_location covers the other workers.
_user_locks: dict[int, threading.Lock] = {}
_user_locks_guard = threading.Lock()

def user_lock(user_id: int) -> threading.Lock:
    with _user_locks_guard:
        lock = _user_locks.get(user_id)
        if lock is None:
            lock = threading.Lock()
            _user_locks[user_id] = lock
        return lock
