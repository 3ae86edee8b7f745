"""
Raffle Statistics
Read-only counts over the live ticket ledger for the allocation screen and admin dashboard
"""

import logging

from sqlalchemy import text

from .database import fetch_raffle
from .exceptions import RaffleNotFound

logger = logging.getLogger(__name__)


class StatsAggregator:
    """Computes ticket counts straight from the tickets table (no stored counters)"""

    def __init__(self, engine):
        self.engine = engine

    def compute_stats(self, raffle_id):
        """
        Ticket totals for a raffle

        Args:
            raffle_id: Raffle ID

        Returns:
            dict: {
                'raffle_id', 'status', 'total', 'assigned', 'unassigned',
                'participants', 'per_artist': {artist_id: count},
                'winners': {artist_id: winner_ticket_id}, 'winners_selected'
            }

        Raises:
            RaffleNotFound: Unknown raffle
        """
        with self.engine.begin() as conn:
            raffle = fetch_raffle(conn, raffle_id)
            if not raffle:
                raise RaffleNotFound(raffle_id)

            row = conn.execute(text("""
                SELECT
                    COUNT(*),
                    COALESCE(SUM(CASE WHEN artist_id IS NOT NULL THEN 1 ELSE 0 END), 0),
                    COALESCE(SUM(CASE WHEN artist_id IS NULL THEN 1 ELSE 0 END), 0),
                    COUNT(DISTINCT participant_id)
                FROM tickets
                WHERE raffle_id = :raffle_id
            """), {'raffle_id': raffle_id}).fetchone()

            # Every raffle artist appears, with 0 if nothing is allocated yet
            result = conn.execute(text("""
                SELECT
                    ra.artist_id,
                    ra.winner_ticket_id,
                    COUNT(t.id)
                FROM raffle_artists ra
                LEFT JOIN tickets t
                    ON t.raffle_id = ra.raffle_id AND t.artist_id = ra.artist_id
                WHERE ra.raffle_id = :raffle_id
                GROUP BY ra.artist_id, ra.winner_ticket_id
                ORDER BY ra.artist_id
            """), {'raffle_id': raffle_id})

            per_artist = {}
            winners = {}
            for artist_id, winner_ticket_id, count in result:
                per_artist[artist_id] = count
                if winner_ticket_id is not None:
                    winners[artist_id] = winner_ticket_id

        total, assigned, unassigned, participants = row[0], int(row[1]), int(row[2]), row[3]

        if assigned + unassigned != total:
            logger.error(
                f"Ticket counts inconsistent for raffle #{raffle_id}: "
                f"{assigned} assigned + {unassigned} unassigned != {total} total"
            )

        return {
            'raffle_id': raffle_id,
            'status': raffle['status'],
            'total': total,
            'assigned': assigned,
            'unassigned': unassigned,
            'participants': participants,
            'per_artist': per_artist,
            'winners': winners,
            'winners_selected': len(winners),
        }

    def participant_summary(self, participant_id, raffle_id):
        """
        A participant's own allocation state (remaining capacity before a request)

        Args:
            participant_id: Ticket owner
            raffle_id: Raffle ID

        Returns:
            dict: total, assigned, unassigned and per_artist counts for the participant
        """
        with self.engine.begin() as conn:
            result = conn.execute(text("""
                SELECT artist_id, COUNT(*)
                FROM tickets
                WHERE raffle_id = :raffle_id AND participant_id = :participant_id
                GROUP BY artist_id
            """), {'raffle_id': raffle_id, 'participant_id': participant_id})

            per_artist = {}
            unassigned = 0
            for artist_id, count in result:
                if artist_id is None:
                    unassigned = count
                else:
                    per_artist[artist_id] = count

        assigned = sum(per_artist.values())
        return {
            'participant_id': participant_id,
            'raffle_id': raffle_id,
            'total': assigned + unassigned,
            'assigned': assigned,
            'unassigned': unassigned,
            'per_artist': dict(sorted(per_artist.items())),
        }

    def artist_board(self, raffle_id):
        """
        Per-artist allocation and winner state for the admin dashboard

        Args:
            raffle_id: Raffle ID

        Returns:
            list: One entry per raffle artist, largest allocation first
        """
        with self.engine.begin() as conn:
            result = conn.execute(text("""
                SELECT
                    ra.artist_id,
                    a.name,
                    COUNT(t.id) AS ticket_count,
                    COUNT(DISTINCT t.participant_id) AS participant_count,
                    ra.winner_ticket_id,
                    w.ticket_number,
                    ra.winner_selected_at
                FROM raffle_artists ra
                JOIN artists a ON a.id = ra.artist_id
                LEFT JOIN tickets t
                    ON t.raffle_id = ra.raffle_id AND t.artist_id = ra.artist_id
                LEFT JOIN tickets w ON w.id = ra.winner_ticket_id
                WHERE ra.raffle_id = :raffle_id
                GROUP BY ra.artist_id, a.name, ra.winner_ticket_id, w.ticket_number, ra.winner_selected_at
                ORDER BY ticket_count DESC, a.name
            """), {'raffle_id': raffle_id})

            board = []
            for row in result:
                board.append({
                    'artist_id': row[0],
                    'artist_name': row[1],
                    'ticket_count': row[2],
                    'participant_count': row[3],
                    'winner_ticket_id': row[4],
                    'winner_ticket_number': row[5],
                    'winner_selected_at': row[6],
                    'has_winner': row[4] is not None,
                })
            return board
