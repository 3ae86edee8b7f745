"""
Ticket Ledger
Authoritative record of ticket ownership and artist allocation
"""

import logging

from sqlalchemy import text

from .database import transaction
from .exceptions import AlreadyAssigned, LedgerError, TicketNotFound

logger = logging.getLogger(__name__)

TICKET_COLUMNS = "id, raffle_id, ticket_number, participant_id, artist_id, created_at"


def _ticket_from_row(row):
    return {
        'id': row[0],
        'raffle_id': row[1],
        'ticket_number': row[2],
        'participant_id': row[3],
        'artist_id': row[4],
        'created_at': row[5],
    }


class TicketLedger:
    """
    Reads and guarded writes on the tickets table

    Every method takes an optional open connection so callers can run several
    ledger operations inside one transaction; without it each call runs in
    its own transaction.
    """

    def __init__(self, engine):
        self.engine = engine

    def get_ticket(self, ticket_id, conn=None):
        """
        Get a single ticket

        Returns:
            dict: Ticket or None
        """
        with transaction(self.engine, conn) as conn:
            result = conn.execute(text(f"""
                SELECT {TICKET_COLUMNS}
                FROM tickets
                WHERE id = :ticket_id
            """), {'ticket_id': ticket_id})
            row = result.fetchone()
            return _ticket_from_row(row) if row else None

    def list_tickets_for_participant(self, participant_id, raffle_id, conn=None):
        """
        All tickets a participant owns in a raffle, assigned or not

        Args:
            participant_id: Ticket owner
            raffle_id: Raffle ID
            conn: Optional open connection

        Returns:
            list: Tickets ordered by ticket_number
        """
        with transaction(self.engine, conn) as conn:
            result = conn.execute(text(f"""
                SELECT {TICKET_COLUMNS}
                FROM tickets
                WHERE raffle_id = :raffle_id AND participant_id = :participant_id
                ORDER BY ticket_number
            """), {'raffle_id': raffle_id, 'participant_id': participant_id})
            return [_ticket_from_row(row) for row in result]

    def list_unassigned_tickets(self, participant_id, raffle_id, conn=None):
        """Tickets a participant can still allocate, ordered by ticket_number"""
        with transaction(self.engine, conn) as conn:
            result = conn.execute(text(f"""
                SELECT {TICKET_COLUMNS}
                FROM tickets
                WHERE raffle_id = :raffle_id
                  AND participant_id = :participant_id
                  AND artist_id IS NULL
                ORDER BY ticket_number
            """), {'raffle_id': raffle_id, 'participant_id': participant_id})
            return [_ticket_from_row(row) for row in result]

    def list_tickets_for_artist(self, raffle_id, artist_id, conn=None):
        """
        All tickets currently allocated to an artist, across participants

        Args:
            raffle_id: Raffle ID
            artist_id: Artist ID
            conn: Optional open connection

        Returns:
            list: Tickets ordered by ticket_number
        """
        with transaction(self.engine, conn) as conn:
            result = conn.execute(text(f"""
                SELECT {TICKET_COLUMNS}
                FROM tickets
                WHERE raffle_id = :raffle_id AND artist_id = :artist_id
                ORDER BY ticket_number
            """), {'raffle_id': raffle_id, 'artist_id': artist_id})
            return [_ticket_from_row(row) for row in result]

    def set_ticket_artist(self, ticket_id, artist_id, conn=None):
        """
        Allocate one ticket to an artist

        The write only applies while the ticket is unassigned; a ticket that
        already has an artist is never overwritten.

        Args:
            ticket_id: Ticket ID
            artist_id: Artist ID
            conn: Optional open connection

        Raises:
            AlreadyAssigned: The ticket already has an artist
            TicketNotFound: No such ticket
            LedgerError: No artist given
        """
        if artist_id is None:
            raise LedgerError(f"Ticket {ticket_id} can only be assigned to an artist, not cleared")

        with transaction(self.engine, conn) as conn:
            result = conn.execute(text("""
                UPDATE tickets
                SET artist_id = :artist_id
                WHERE id = :ticket_id AND artist_id IS NULL
            """), {'ticket_id': ticket_id, 'artist_id': artist_id})

            if result.rowcount == 1:
                logger.debug(f"Ticket {ticket_id} assigned to artist {artist_id}")
                return

            current = conn.execute(text("""
                SELECT artist_id FROM tickets WHERE id = :ticket_id
            """), {'ticket_id': ticket_id}).fetchone()

            if current is None:
                raise TicketNotFound(ticket_id)
            raise AlreadyAssigned(ticket_id, current[0])
