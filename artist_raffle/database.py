"""
Database Schema Setup for the Artist Raffle
Creates the raffle, ticket and winner tables and the helpers that populate them
"""

from contextlib import contextmanager
import logging

from sqlalchemy import inspect, text

from utils.error_helpers import db_error_handler

from .config import RAFFLE_STATUSES
from .exceptions import (
    InvalidStatusTransition,
    IssuanceError,
    RaffleNotFound,
    UnknownArtist,
)

logger = logging.getLogger(__name__)

# SQL schema for the artist raffle. {pk} is replaced per dialect.
RAFFLE_SCHEMA_SQL = """
-- ============================================
-- ARTIST RAFFLE DATABASE SCHEMA
-- ============================================

-- Raffles (draft -> active -> ended)
CREATE TABLE IF NOT EXISTS raffles (
    id {pk},
    name TEXT NOT NULL,
    description TEXT,
    status VARCHAR(20) NOT NULL DEFAULT 'draft',
    max_tickets INTEGER,
    price_per_ticket NUMERIC(10, 2) DEFAULT 0,
    start_date TIMESTAMP,
    end_date TIMESTAMP,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Ticket holders
CREATE TABLE IF NOT EXISTS participants (
    id {pk},
    name TEXT NOT NULL,
    email TEXT,
    phone TEXT,
    instagram TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Artists tickets can be allocated to
CREATE TABLE IF NOT EXISTS artists (
    id {pk},
    name TEXT NOT NULL,
    bio TEXT,
    image_url TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Raffle tickets. artist_id is NULL until the owner allocates the ticket
CREATE TABLE IF NOT EXISTS tickets (
    id {pk},
    raffle_id INTEGER NOT NULL REFERENCES raffles(id) ON DELETE CASCADE,
    ticket_number INTEGER NOT NULL,
    participant_id INTEGER NOT NULL REFERENCES participants(id),
    artist_id INTEGER REFERENCES artists(id),
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(raffle_id, ticket_number)
);

-- Artists taking part in a raffle, with the recorded winner
CREATE TABLE IF NOT EXISTS raffle_artists (
    id {pk},
    raffle_id INTEGER NOT NULL REFERENCES raffles(id) ON DELETE CASCADE,
    artist_id INTEGER NOT NULL REFERENCES artists(id),
    winner_ticket_id INTEGER REFERENCES tickets(id),
    winner_selected_at TIMESTAMP,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(raffle_id, artist_id)
);

-- Winner draw audit trail (one draw per raffle artist)
CREATE TABLE IF NOT EXISTS raffle_winner_draws (
    id {pk},
    raffle_artist_id INTEGER NOT NULL UNIQUE REFERENCES raffle_artists(id),
    raffle_id INTEGER NOT NULL,
    artist_id INTEGER NOT NULL,
    ticket_id INTEGER NOT NULL,
    ticket_number INTEGER NOT NULL,
    participant_id INTEGER NOT NULL,
    pool_size INTEGER NOT NULL,
    drawn_index INTEGER NOT NULL,
    drawn_by TEXT,  -- Admin who triggered the draw
    drawn_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Allocation audit trail (one row per artist per committed batch)
CREATE TABLE IF NOT EXISTS raffle_allocation_log (
    id {pk},
    raffle_id INTEGER NOT NULL,
    participant_id INTEGER NOT NULL,
    artist_id INTEGER NOT NULL,
    quantity INTEGER NOT NULL,
    ticket_numbers TEXT NOT NULL,  -- comma separated
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- ============================================
-- INDICES FOR PERFORMANCE
-- ============================================

CREATE INDEX IF NOT EXISTS idx_tickets_raffle_participant ON tickets(raffle_id, participant_id);
CREATE INDEX IF NOT EXISTS idx_tickets_raffle_artist ON tickets(raffle_id, artist_id);
CREATE INDEX IF NOT EXISTS idx_raffle_artists_raffle ON raffle_artists(raffle_id);
CREATE INDEX IF NOT EXISTS idx_raffle_allocation_log_raffle ON raffle_allocation_log(raffle_id);
CREATE INDEX IF NOT EXISTS idx_raffles_status ON raffles(status);
"""

REQUIRED_TABLES = [
    'raffles',
    'participants',
    'artists',
    'tickets',
    'raffle_artists',
    'raffle_winner_draws',
    'raffle_allocation_log',
]

# Allowed raffle status changes
STATUS_TRANSITIONS = {
    'draft': ('active',),
    'active': ('ended',),
    'ended': (),
}


def _primary_key_sql(engine):
    """SERIAL only exists on PostgreSQL; SQLite needs INTEGER PRIMARY KEY for rowid ids"""
    if engine.dialect.name == 'sqlite':
        return 'INTEGER PRIMARY KEY AUTOINCREMENT'
    return 'SERIAL PRIMARY KEY'


def _split_statements(schema_sql):
    """Split the schema script into single statements (SQLite runs one at a time)"""
    statements = []
    current_statement = []

    for line in schema_sql.split('\n'):
        stripped = line.strip()
        if not stripped or stripped.startswith('--'):
            continue

        current_statement.append(line)

        if stripped.endswith(';'):
            statements.append('\n'.join(current_statement))
            current_statement = []

    return statements


@db_error_handler
def setup_raffle_database(engine):
    """
    Create all artist raffle tables and indices

    Args:
        engine: SQLAlchemy engine instance

    Returns:
        bool: True once the schema exists
    """
    logger.info("Setting up artist raffle database schema...")

    schema_sql = RAFFLE_SCHEMA_SQL.replace('{pk}', _primary_key_sql(engine))

    with engine.begin() as conn:
        for statement in _split_statements(schema_sql):
            conn.execute(text(statement))

    logger.info("✅ Artist raffle database schema created successfully")
    return True


def verify_raffle_schema(engine):
    """
    Verify that all required tables exist

    Args:
        engine: SQLAlchemy engine instance

    Returns:
        dict: Status of each table (True/False)
    """
    existing = set(inspect(engine).get_table_names())
    return {table: table in existing for table in REQUIRED_TABLES}


@contextmanager
def transaction(engine, conn=None):
    """
    Reuse the caller's connection or open a new transaction

    Usage:
        with transaction(self.engine, conn) as conn:
            conn.execute(text("UPDATE tickets SET ..."))

    Commits on success and rolls back on error when the transaction is opened
    here; a passed-in connection is left to its owner.
    """
    if conn is not None:
        yield conn
        return

    with engine.begin() as new_conn:
        yield new_conn


def _row_to_dict(row):
    return dict(row._mapping) if row is not None else None


# ============================================
# RAFFLES
# ============================================

@db_error_handler
def create_raffle(engine, name, max_tickets=None, price_per_ticket=0, start_date=None,
                  end_date=None, description=None, status='draft'):
    """
    Create a raffle

    Args:
        engine: SQLAlchemy engine instance
        name: Raffle name
        max_tickets: Upper bound on issued tickets (None = unlimited)
        price_per_ticket: Ticket price
        start_date: datetime - Raffle start
        end_date: datetime - Raffle end
        description: Optional description
        status: Initial status ('draft' unless seeding data)

    Returns:
        int: New raffle ID
    """
    if status not in RAFFLE_STATUSES:
        raise ValueError(f"Invalid raffle status: {status}")

    with engine.begin() as conn:
        result = conn.execute(text("""
            INSERT INTO raffles
                (name, description, status, max_tickets, price_per_ticket, start_date, end_date)
            VALUES
                (:name, :description, :status, :max_tickets, :price, :start_date, :end_date)
            RETURNING id
        """), {
            'name': name,
            'description': description,
            'status': status,
            'max_tickets': max_tickets,
            'price': price_per_ticket,
            'start_date': start_date,
            'end_date': end_date,
        })
        raffle_id = result.scalar()

    logger.info(f"✅ Created raffle #{raffle_id} '{name}' ({status})")
    return raffle_id


def fetch_raffle(conn, raffle_id):
    """Load a raffle row on an open connection"""
    result = conn.execute(text("""
        SELECT id, name, description, status, max_tickets, price_per_ticket,
               start_date, end_date, created_at
        FROM raffles
        WHERE id = :raffle_id
    """), {'raffle_id': raffle_id})
    return _row_to_dict(result.fetchone())


def get_raffle(engine, raffle_id):
    """
    Get a raffle

    Args:
        engine: SQLAlchemy engine instance
        raffle_id: Raffle ID

    Returns:
        dict: Raffle info or None
    """
    with engine.begin() as conn:
        return fetch_raffle(conn, raffle_id)


@db_error_handler
def set_raffle_status(engine, raffle_id, status):
    """
    Move a raffle along its lifecycle (draft -> active -> ended)

    Args:
        engine: SQLAlchemy engine instance
        raffle_id: Raffle ID
        status: New status

    Returns:
        dict: Updated raffle

    Raises:
        RaffleNotFound: Unknown raffle
        InvalidStatusTransition: Status change skips or reverses a step
    """
    with engine.begin() as conn:
        raffle = fetch_raffle(conn, raffle_id)
        if not raffle:
            raise RaffleNotFound(raffle_id)

        current = raffle['status']
        if status not in STATUS_TRANSITIONS.get(current, ()):
            raise InvalidStatusTransition(raffle_id, current, status)

        # Guarded on the status we read so two admins cannot both apply a change
        result = conn.execute(text("""
            UPDATE raffles SET status = :status
            WHERE id = :raffle_id AND status = :current
        """), {'status': status, 'raffle_id': raffle_id, 'current': current})
        if result.rowcount != 1:
            latest = fetch_raffle(conn, raffle_id)
            raise InvalidStatusTransition(raffle_id, latest['status'], status)

        raffle['status'] = status

    logger.info(f"Raffle #{raffle_id} moved from {current} to {status}")
    return raffle


# ============================================
# PARTICIPANTS & ARTISTS
# ============================================

@db_error_handler
def create_participant(engine, name, email=None, phone=None, instagram=None):
    """Create a ticket holder and return its ID"""
    with engine.begin() as conn:
        result = conn.execute(text("""
            INSERT INTO participants (name, email, phone, instagram)
            VALUES (:name, :email, :phone, :instagram)
            RETURNING id
        """), {'name': name, 'email': email, 'phone': phone, 'instagram': instagram})
        return result.scalar()


@db_error_handler
def create_artist(engine, name, bio=None, image_url=None):
    """Create an artist and return its ID"""
    with engine.begin() as conn:
        result = conn.execute(text("""
            INSERT INTO artists (name, bio, image_url)
            VALUES (:name, :bio, :image_url)
            RETURNING id
        """), {'name': name, 'bio': bio, 'image_url': image_url})
        return result.scalar()


@db_error_handler
def add_artist_to_raffle(engine, raffle_id, artist_id):
    """
    Add an artist to a raffle (no-op if already added)

    Args:
        engine: SQLAlchemy engine instance
        raffle_id: Raffle ID
        artist_id: Artist ID

    Returns:
        int: raffle_artists row ID
    """
    with engine.begin() as conn:
        if not fetch_raffle(conn, raffle_id):
            raise RaffleNotFound(raffle_id)

        conn.execute(text("""
            INSERT INTO raffle_artists (raffle_id, artist_id)
            VALUES (:raffle_id, :artist_id)
            ON CONFLICT (raffle_id, artist_id) DO NOTHING
        """), {'raffle_id': raffle_id, 'artist_id': artist_id})

        raffle_artist = fetch_raffle_artist(conn, raffle_id, artist_id)

    logger.info(f"Artist {artist_id} is in raffle #{raffle_id} (raffle_artist {raffle_artist['id']})")
    return raffle_artist['id']


def fetch_raffle_artist(conn, raffle_id, artist_id):
    """Load the raffle_artists row for an artist on an open connection"""
    result = conn.execute(text("""
        SELECT id, raffle_id, artist_id, winner_ticket_id, winner_selected_at
        FROM raffle_artists
        WHERE raffle_id = :raffle_id AND artist_id = :artist_id
    """), {'raffle_id': raffle_id, 'artist_id': artist_id})
    return _row_to_dict(result.fetchone())


def require_raffle_artist(conn, raffle_id, artist_id):
    """Load a raffle_artists row or raise UnknownArtist"""
    raffle_artist = fetch_raffle_artist(conn, raffle_id, artist_id)
    if not raffle_artist:
        raise UnknownArtist(raffle_id, artist_id)
    return raffle_artist


def get_raffle_artist(engine, raffle_id, artist_id):
    """
    Get the raffle_artists row for an artist

    Returns:
        dict: Row info or None
    """
    with engine.begin() as conn:
        return fetch_raffle_artist(conn, raffle_id, artist_id)


def list_raffle_artists(engine, raffle_id):
    """
    List the artists in a raffle

    Returns:
        list: dicts with artist and winner fields, ordered by artist ID
    """
    with engine.begin() as conn:
        result = conn.execute(text("""
            SELECT
                ra.id AS raffle_artist_id,
                ra.artist_id,
                a.name,
                a.bio,
                a.image_url,
                ra.winner_ticket_id,
                ra.winner_selected_at
            FROM raffle_artists ra
            JOIN artists a ON a.id = ra.artist_id
            WHERE ra.raffle_id = :raffle_id
            ORDER BY ra.artist_id
        """), {'raffle_id': raffle_id})
        return [_row_to_dict(row) for row in result]


# ============================================
# TICKET ISSUANCE
# ============================================

@db_error_handler
def issue_tickets(engine, raffle_id, participant_id, count):
    """
    Issue new unallocated tickets to a participant

    Ticket numbers continue from the raffle's highest number.

    Args:
        engine: SQLAlchemy engine instance
        raffle_id: Raffle ID
        participant_id: Owner of the new tickets
        count: Number of tickets to issue

    Returns:
        list: New tickets (id, ticket_number) in number order

    Raises:
        RaffleNotFound: Unknown raffle
        IssuanceError: Invalid count or raffle sold out
    """
    if count <= 0:
        raise IssuanceError(f"Cannot issue {count} tickets (must be > 0)")

    with engine.begin() as conn:
        raffle = fetch_raffle(conn, raffle_id)
        if not raffle:
            raise RaffleNotFound(raffle_id)

        row = conn.execute(text("""
            SELECT COUNT(*), COALESCE(MAX(ticket_number), 0)
            FROM tickets
            WHERE raffle_id = :raffle_id
        """), {'raffle_id': raffle_id}).fetchone()
        issued, last_number = row[0], row[1]

        max_tickets = raffle['max_tickets']
        if max_tickets is not None and issued + count > max_tickets:
            raise IssuanceError(
                f"Raffle {raffle_id} has {max_tickets - issued} tickets left, cannot issue {count}"
            )

        tickets = []
        for offset in range(1, count + 1):
            ticket_number = last_number + offset
            ticket_id = conn.execute(text("""
                INSERT INTO tickets (raffle_id, ticket_number, participant_id)
                VALUES (:raffle_id, :ticket_number, :participant_id)
                RETURNING id
            """), {
                'raffle_id': raffle_id,
                'ticket_number': ticket_number,
                'participant_id': participant_id
            }).scalar()
            tickets.append({'id': ticket_id, 'ticket_number': ticket_number})

    logger.info(f"🎟️ Issued {count} tickets to participant {participant_id} in raffle #{raffle_id}")
    return tickets

