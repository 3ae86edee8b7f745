"""
Allocation Assigner
Moves a participant's unassigned tickets onto the artists they chose
"""

import logging

from sqlalchemy import text

from utils.error_helpers import log_exceptions

from .config import ALLOCATION_OPEN_STATUSES
from .database import fetch_raffle
from .exceptions import (
    AlreadyAssigned,
    ConcurrentAllocationConflict,
    InsufficientUnassignedTickets,
    InvalidAllocationRequest,
    RaffleClosed,
    RaffleError,
    RaffleNotFound,
    UnknownArtist,
)
from .ledger import TicketLedger

logger = logging.getLogger(__name__)


def normalize_requests(requests):
    """
    Validate requested quantities

    Args:
        requests: Mapping of artist_id -> quantity

    Returns:
        dict: artist_id -> quantity, zero quantities included

    Raises:
        InvalidAllocationRequest: A quantity is not a non-negative integer
    """
    if requests is None:
        raise InvalidAllocationRequest("No allocation requests supplied")

    normalized = {}
    for artist_id, quantity in dict(requests).items():
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise InvalidAllocationRequest(
                f"Quantity for artist {artist_id} must be an integer, got {quantity!r}"
            )
        if quantity < 0:
            raise InvalidAllocationRequest(
                f"Quantity for artist {artist_id} must not be negative, got {quantity}"
            )
        normalized[artist_id] = quantity
    return normalized


def plan_allocation(unassigned_tickets, requests):
    """
    Decide which tickets go to which artist

    Tickets are consumed from the lowest ticket_number up while artists are
    walked in ascending artist id, so the same ledger state and request
    always produce the same plan.

    Args:
        unassigned_tickets: The participant's unassigned tickets
        requests: Validated artist_id -> quantity mapping

    Returns:
        dict: artist_id -> list of tickets, in artist id order (zero quantities omitted)
    """
    tickets = sorted(unassigned_tickets, key=lambda t: t['ticket_number'])
    requested_total = sum(requests.values())
    if requested_total > len(tickets):
        raise ValueError(f"Cannot plan {requested_total} tickets from {len(tickets)} unassigned")

    plan = {}
    position = 0
    for artist_id in sorted(requests):
        quantity = requests[artist_id]
        if quantity == 0:
            continue
        plan[artist_id] = tickets[position:position + quantity]
        position += quantity
    return plan


class AllocationAssigner:
    """Converts unassigned tickets into artist allocations, all or nothing"""

    def __init__(self, engine, ledger=None):
        self.engine = engine
        self.ledger = ledger or TicketLedger(engine)

    def assign_tickets(self, participant_id, raffle_id, requests):
        """
        Allocate a participant's tickets to artists

        The raffle status, artist membership and the participant's free ticket
        count are checked against the ledger inside the same transaction that
        writes the allocation. Any failure rolls the whole batch back.

        Args:
            participant_id: Authenticated ticket owner
            raffle_id: Raffle ID
            requests: Mapping of artist_id -> number of tickets

        Returns:
            dict: {
                'participant_id', 'raffle_id',
                'allocations': {artist_id: [ticket_number, ...]},
                'assigned_count', 'remaining_unassigned'
            }

        Raises:
            InvalidAllocationRequest: Malformed quantities
            RaffleNotFound: Unknown raffle
            RaffleClosed: Raffle is not accepting allocations
            UnknownArtist: An artist is not part of the raffle
            InsufficientUnassignedTickets: Request exceeds free tickets
            ConcurrentAllocationConflict: Another request claimed a ticket first
        """
        with log_exceptions("ticket allocation", expected=(RaffleError,),
                            participant_id=participant_id, raffle_id=raffle_id):
            if participant_id is None:
                raise InvalidAllocationRequest("No participant supplied")
            normalized = normalize_requests(requests)
            requested_total = sum(normalized.values())

            with self.engine.begin() as conn:
                self._check_raffle(conn, raffle_id, normalized)

                unassigned = self.ledger.list_unassigned_tickets(participant_id, raffle_id, conn=conn)
                if requested_total > len(unassigned):
                    raise InsufficientUnassignedTickets(
                        participant_id, raffle_id, requested_total, len(unassigned)
                    )

                plan = plan_allocation(unassigned, normalized)

                try:
                    for artist_id, tickets in plan.items():
                        for ticket in tickets:
                            self.ledger.set_ticket_artist(ticket['id'], artist_id, conn=conn)
                except AlreadyAssigned as e:
                    raise ConcurrentAllocationConflict(participant_id, raffle_id, e.ticket_id) from e

                self._log_allocation(conn, participant_id, raffle_id, plan)

        allocations = {
            artist_id: [t['ticket_number'] for t in tickets]
            for artist_id, tickets in plan.items()
        }

        if requested_total:
            logger.info(
                f"✅ Participant {participant_id} allocated {requested_total} tickets "
                f"in raffle #{raffle_id}: {allocations}"
            )

        return {
            'participant_id': participant_id,
            'raffle_id': raffle_id,
            'allocations': allocations,
            'assigned_count': requested_total,
            'remaining_unassigned': len(unassigned) - requested_total,
        }

    def _check_raffle(self, conn, raffle_id, requests):
        """Raffle must exist, accept allocations and contain every requested artist"""
        raffle = fetch_raffle(conn, raffle_id)
        if not raffle:
            raise RaffleNotFound(raffle_id)
        if raffle['status'] not in ALLOCATION_OPEN_STATUSES:
            raise RaffleClosed(raffle_id, raffle['status'], 'allocation')

        result = conn.execute(text("""
            SELECT artist_id FROM raffle_artists WHERE raffle_id = :raffle_id
        """), {'raffle_id': raffle_id})
        raffle_artist_ids = {row[0] for row in result}

        for artist_id in sorted(requests):
            if artist_id not in raffle_artist_ids:
                raise UnknownArtist(raffle_id, artist_id)

    def _log_allocation(self, conn, participant_id, raffle_id, plan):
        """Audit rows, written in the allocation's transaction"""
        for artist_id, tickets in plan.items():
            conn.execute(text("""
                INSERT INTO raffle_allocation_log
                    (raffle_id, participant_id, artist_id, quantity, ticket_numbers)
                VALUES
                    (:raffle_id, :participant_id, :artist_id, :quantity, :ticket_numbers)
            """), {
                'raffle_id': raffle_id,
                'participant_id': participant_id,
                'artist_id': artist_id,
                'quantity': len(tickets),
                'ticket_numbers': ','.join(str(t['ticket_number']) for t in tickets),
            })

    def get_allocation_history(self, raffle_id, participant_id=None, limit=50):
        """
        Recent committed allocations for a raffle

        Args:
            raffle_id: Raffle ID
            participant_id: Only this participant's allocations (optional)
            limit: Number of rows to return

        Returns:
            list: Allocation log entries, newest first
        """
        query = """
            SELECT id, participant_id, artist_id, quantity, ticket_numbers, created_at
            FROM raffle_allocation_log
            WHERE raffle_id = :raffle_id
        """
        params = {'raffle_id': raffle_id, 'limit': limit}
        if participant_id is not None:
            query += " AND participant_id = :participant_id"
            params['participant_id'] = participant_id
        query += " ORDER BY id DESC LIMIT :limit"

        with self.engine.begin() as conn:
            result = conn.execute(text(query), params)
            history = []
            for row in result:
                history.append({
                    'id': row[0],
                    'participant_id': row[1],
                    'artist_id': row[2],
                    'quantity': row[3],
                    'ticket_numbers': [int(n) for n in row[4].split(',') if n],
                    'created_at': row[5],
                })
            return history
