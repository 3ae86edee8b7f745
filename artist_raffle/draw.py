"""
Winner Draw Logic
Selects one winning ticket per raffle artist, uniformly and exactly once
"""

import logging
import secrets

from sqlalchemy import text

from utils.error_helpers import log_exceptions

from .config import DEFAULT_SIMULATION_RUNS, DRAW_OPEN_STATUSES, WINNER_DISPLAY_NAME_STYLE
from .database import fetch_raffle, require_raffle_artist
from .exceptions import (
    NoEligibleTickets,
    RaffleClosed,
    RaffleError,
    RaffleNotFound,
    WinnerAlreadySelected,
)
from .ledger import TicketLedger

logger = logging.getLogger(__name__)


def format_display_name(full_name, style=WINNER_DISPLAY_NAME_STYLE):
    """
    Public form of a winner's name

    "first_last_initial" turns "Maya Lin Chen" into "Maya C.", a single name
    stays as is; "full" keeps the whole name.
    """
    if not full_name or not full_name.strip():
        return None

    parts = full_name.strip().split()
    if style == 'full' or len(parts) == 1:
        return ' '.join(parts)
    return f"{parts[0]} {parts[-1][0].upper()}."


def pick_winning_index(pool_size, rng):
    """Uniform index in [0, pool_size); ticket numbers and owners play no part"""
    if pool_size <= 0:
        raise ValueError("Cannot draw from an empty pool")
    return rng.randrange(pool_size)


class WinnerDraw:
    """Handles winner selection and the winner read models"""

    def __init__(self, engine, ledger=None, notifier=None, rng=None):
        """
        Args:
            engine: SQLAlchemy database engine
            ledger: TicketLedger (one is built from the engine by default)
            notifier: Object with publish_winner_selected(**winner) (optional)
            rng: Random source with randrange(); secrets.SystemRandom by default
        """
        self.engine = engine
        self.ledger = ledger or TicketLedger(engine)
        self.notifier = notifier
        self.rng = rng or secrets.SystemRandom()

    def select_winner(self, raffle_id, artist_id, drawn_by=None, raise_if_selected=False):
        """
        Draw the winning ticket for an artist

        The pool is read fresh inside the draw transaction and the winner is
        written with a compare-and-set on winner_ticket_id IS NULL. If a winner
        already exists, or another draw commits first, the recorded winner is
        returned with already_selected=True and nothing is written.

        Args:
            raffle_id: Raffle ID
            artist_id: Artist ID
            drawn_by: Admin identifier for the audit trail (optional)
            raise_if_selected: Raise WinnerAlreadySelected instead of returning the existing winner

        Returns:
            dict: Winner info (ticket_id, ticket_number, participant_id, ...)

        Raises:
            RaffleNotFound: Unknown raffle
            UnknownArtist: Artist is not part of the raffle
            RaffleClosed: Raffle is still a draft
            NoEligibleTickets: No tickets allocated to the artist
            WinnerAlreadySelected: Only with raise_if_selected=True
        """
        with log_exceptions("winner draw", expected=(RaffleError,),
                            raffle_id=raffle_id, artist_id=artist_id):
            winner = self._draw(raffle_id, artist_id, drawn_by)

        if winner['already_selected']:
            logger.info(
                f"Winner for artist {artist_id} in raffle #{raffle_id} already selected: "
                f"ticket #{winner['ticket_number']}"
            )
            if raise_if_selected:
                raise WinnerAlreadySelected(raffle_id, artist_id, winner)
            return winner

        logger.info(f"🎉 Winner for artist {artist_id} in raffle #{raffle_id}: ticket #{winner['ticket_number']}")
        logger.info(f"   Participant: {winner['participant_id']} ({winner['participant_name']})")
        logger.info(f"   Pool size: {winner['pool_size']}, drawn by: {drawn_by or 'unknown'}")

        self._notify(winner)
        return winner

    def _draw(self, raffle_id, artist_id, drawn_by):
        with self.engine.begin() as conn:
            raffle = fetch_raffle(conn, raffle_id)
            if not raffle:
                raise RaffleNotFound(raffle_id)
            raffle_artist = require_raffle_artist(conn, raffle_id, artist_id)

            if raffle_artist['winner_ticket_id'] is not None:
                return self._load_winner(conn, raffle_artist['id'], already_selected=True)

            if raffle['status'] not in DRAW_OPEN_STATUSES:
                raise RaffleClosed(raffle_id, raffle['status'], 'winner draw')

            pool = self.ledger.list_tickets_for_artist(raffle_id, artist_id, conn=conn)
            if not pool:
                raise NoEligibleTickets(raffle_id, artist_id)

            drawn_index = pick_winning_index(len(pool), self.rng)
            ticket = pool[drawn_index]

            result = conn.execute(text("""
                UPDATE raffle_artists
                SET winner_ticket_id = :ticket_id,
                    winner_selected_at = CURRENT_TIMESTAMP
                WHERE id = :raffle_artist_id AND winner_ticket_id IS NULL
            """), {'ticket_id': ticket['id'], 'raffle_artist_id': raffle_artist['id']})

            if result.rowcount != 1:
                # Another draw committed between our read and write
                logger.warning(f"Concurrent draw for artist {artist_id} in raffle #{raffle_id} won the race")
                return self._load_winner(conn, raffle_artist['id'], already_selected=True)

            conn.execute(text("""
                INSERT INTO raffle_winner_draws
                    (raffle_artist_id, raffle_id, artist_id, ticket_id, ticket_number,
                     participant_id, pool_size, drawn_index, drawn_by)
                VALUES
                    (:raffle_artist_id, :raffle_id, :artist_id, :ticket_id, :ticket_number,
                     :participant_id, :pool_size, :drawn_index, :drawn_by)
            """), {
                'raffle_artist_id': raffle_artist['id'],
                'raffle_id': raffle_id,
                'artist_id': artist_id,
                'ticket_id': ticket['id'],
                'ticket_number': ticket['ticket_number'],
                'participant_id': ticket['participant_id'],
                'pool_size': len(pool),
                'drawn_index': drawn_index,
                'drawn_by': drawn_by,
            })

            return self._load_winner(conn, raffle_artist['id'], already_selected=False)

    def _load_winner(self, conn, raffle_artist_id, already_selected):
        """Recorded winner of a raffle artist, or None"""
        row = conn.execute(text("""
            SELECT
                ra.raffle_id,
                ra.artist_id,
                t.id,
                t.ticket_number,
                t.participant_id,
                p.name,
                ra.winner_selected_at,
                d.pool_size,
                d.drawn_by
            FROM raffle_artists ra
            JOIN tickets t ON t.id = ra.winner_ticket_id
            LEFT JOIN participants p ON p.id = t.participant_id
            LEFT JOIN raffle_winner_draws d ON d.raffle_artist_id = ra.id
            WHERE ra.id = :raffle_artist_id
        """), {'raffle_artist_id': raffle_artist_id}).fetchone()

        if not row:
            return None

        return {
            'raffle_id': row[0],
            'artist_id': row[1],
            'ticket_id': row[2],
            'ticket_number': row[3],
            'participant_id': row[4],
            'participant_name': row[5],
            'display_name': format_display_name(row[5]),
            'selected_at': row[6],
            'pool_size': row[7],
            'drawn_by': row[8],
            'already_selected': already_selected,
        }

    def _notify(self, winner):
        """Hand the winner to the notifier; a delivery failure never undoes the draw"""
        if self.notifier is None:
            return

        try:
            self.notifier.publish_winner_selected(
                raffle_id=winner['raffle_id'],
                artist_id=winner['artist_id'],
                ticket_id=winner['ticket_id'],
                ticket_number=winner['ticket_number'],
                participant_id=winner['participant_id'],
                participant_name=winner['participant_name'],
                selected_at=winner['selected_at'],
            )
        except Exception as e:
            logger.error(f"Failed to publish winner notification: {e}")

    def get_winner(self, raffle_id, artist_id):
        """
        Recorded winner for an artist without drawing

        Returns:
            dict: Winner info or None if no draw has happened
        """
        with self.engine.begin() as conn:
            raffle_artist = require_raffle_artist(conn, raffle_id, artist_id)
            if raffle_artist['winner_ticket_id'] is None:
                return None
            return self._load_winner(conn, raffle_artist['id'], already_selected=True)

    def list_winners(self, raffle_id):
        """
        Public winners listing for a raffle

        Args:
            raffle_id: Raffle ID

        Returns:
            list: Winners (artist name, ticket number, display name, selection time), newest first
        """
        with self.engine.begin() as conn:
            result = conn.execute(text("""
                SELECT
                    ra.artist_id,
                    a.name,
                    t.ticket_number,
                    p.name,
                    ra.winner_selected_at
                FROM raffle_artists ra
                JOIN artists a ON a.id = ra.artist_id
                JOIN tickets t ON t.id = ra.winner_ticket_id
                LEFT JOIN participants p ON p.id = t.participant_id
                WHERE ra.raffle_id = :raffle_id
                  AND ra.winner_ticket_id IS NOT NULL
                ORDER BY ra.winner_selected_at DESC, ra.id DESC
            """), {'raffle_id': raffle_id})

            winners = []
            for row in result:
                winners.append({
                    'artist_id': row[0],
                    'artist_name': row[1] or 'Unknown Artist',
                    'ticket_number': row[2],
                    'participant_name': format_display_name(row[3]),
                    'selected_at': row[4],
                })
            return winners

    def get_draw_history(self, raffle_id=None, limit=20):
        """
        Recent draws from the audit trail

        Args:
            raffle_id: Only draws of this raffle (optional)
            limit: Number of draws to return

        Returns:
            list: Draw records, newest first
        """
        query = """
            SELECT
                d.raffle_id,
                d.artist_id,
                a.name,
                d.ticket_id,
                d.ticket_number,
                d.participant_id,
                d.pool_size,
                d.drawn_index,
                d.drawn_by,
                d.drawn_at
            FROM raffle_winner_draws d
            JOIN artists a ON a.id = d.artist_id
        """
        params = {'limit': limit}
        if raffle_id is not None:
            query += " WHERE d.raffle_id = :raffle_id"
            params['raffle_id'] = raffle_id
        query += " ORDER BY d.id DESC LIMIT :limit"

        with self.engine.begin() as conn:
            result = conn.execute(text(query), params)

            history = []
            for row in result:
                history.append({
                    'raffle_id': row[0],
                    'artist_id': row[1],
                    'artist_name': row[2],
                    'ticket_id': row[3],
                    'ticket_number': row[4],
                    'participant_id': row[5],
                    'pool_size': row[6],
                    'drawn_index': row[7],
                    'drawn_by': row[8],
                    'drawn_at': row[9],
                })
            return history

    def get_ticket_odds(self, raffle_id, artist_id, participant_id):
        """
        A participant's chance of winning an artist's draw right now

        Returns:
            dict: Odds info or None if the participant has no tickets on the artist
        """
        pool = self.ledger.list_tickets_for_artist(raffle_id, artist_id)
        owned = sum(1 for t in pool if t['participant_id'] == participant_id)

        if not pool or owned == 0:
            return None

        return {
            'participant_tickets': owned,
            'pool_size': len(pool),
            'probability_percent': owned / len(pool) * 100,
            'odds': f"{owned}/{len(pool)}",
        }

    def simulate_draw(self, raffle_id, artist_id, num_simulations=None):
        """
        Run the selection many times without recording anything (fairness check)

        Args:
            raffle_id: Raffle ID
            artist_id: Artist ID
            num_simulations: Number of simulated draws (DEFAULT_SIMULATION_RUNS if None)

        Returns:
            dict: Per-ticket expected and actual hit counts

        Raises:
            ValueError: num_simulations is below 1
            NoEligibleTickets: No tickets allocated to the artist
        """
        if num_simulations is None:
            num_simulations = DEFAULT_SIMULATION_RUNS
        if num_simulations < 1:
            raise ValueError(f"num_simulations must be at least 1, got {num_simulations}")

        pool = self.ledger.list_tickets_for_artist(raffle_id, artist_id)
        if not pool:
            raise NoEligibleTickets(raffle_id, artist_id)

        wins = [0] * len(pool)
        for _ in range(num_simulations):
            wins[pick_winning_index(len(pool), self.rng)] += 1

        expected_wins = num_simulations / len(pool)
        results = []
        for ticket, actual_wins in zip(pool, wins):
            results.append({
                'ticket_id': ticket['id'],
                'ticket_number': ticket['ticket_number'],
                'participant_id': ticket['participant_id'],
                'expected_wins': expected_wins,
                'actual_wins': actual_wins,
                'variance_percent': (actual_wins - expected_wins) / expected_wins * 100,
            })

        return {
            'num_simulations': num_simulations,
            'pool_size': len(pool),
            'results': results,
        }
