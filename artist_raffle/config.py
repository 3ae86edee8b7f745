"""
Artist Raffle Configuration
All configurable parameters for ticket allocation and winner draws
"""

import os

# Database connection (SQLite for local development, PostgreSQL in production)
def get_database_url():
    """Read DATABASE_URL at call time so a .env loaded by the entry point applies"""
    url = os.getenv("DATABASE_URL", "sqlite:///artist_raffle.db")
    # Convert postgres:// to postgresql:// for SQLAlchemy
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


# Redis (REDIS_URL) is optional; without it winner notifications are skipped
RAFFLE_EVENTS_CHANNEL = os.getenv("RAFFLE_EVENTS_CHANNEL", "raffle:events")

# Raffle lifecycle (draft -> active -> ended)
RAFFLE_STATUSES = ("draft", "active", "ended")
ALLOCATION_OPEN_STATUSES = ("active",)
DRAW_OPEN_STATUSES = ("active", "ended")

# Draw settings
DEFAULT_SIMULATION_RUNS = int(os.getenv("DEFAULT_SIMULATION_RUNS", "10000"))
SPIN_SEQUENCE_LENGTH = 30  # Ticket numbers flashed by the operator animation

# Public winner listing shows "First L." instead of the full name
WINNER_DISPLAY_NAME_STYLE = os.getenv("WINNER_DISPLAY_NAME_STYLE", "first_last_initial")
