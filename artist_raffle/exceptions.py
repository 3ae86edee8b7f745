"""
Artist Raffle Exceptions
Error taxonomy for the ticket ledger, allocation and winner draws
"""


class RaffleError(Exception):
    """Base exception for all raffle errors"""
    pass


class RaffleNotFound(RaffleError):
    """Raised when a raffle id does not exist"""

    def __init__(self, raffle_id):
        self.raffle_id = raffle_id
        super().__init__(f"Raffle {raffle_id} not found")


class RaffleClosed(RaffleError):
    """Raised when a raffle's status does not allow the requested operation"""

    def __init__(self, raffle_id, status, operation="allocation"):
        self.raffle_id = raffle_id
        self.status = status
        self.operation = operation
        super().__init__(f"Raffle {raffle_id} is {status}; {operation} is not allowed")


class InvalidStatusTransition(RaffleError):
    """Raised when a raffle status change skips or reverses the lifecycle"""

    def __init__(self, raffle_id, current, requested):
        self.raffle_id = raffle_id
        self.current = current
        self.requested = requested
        super().__init__(f"Raffle {raffle_id} cannot move from {current} to {requested}")


class IssuanceError(RaffleError):
    """Raised when tickets cannot be issued"""
    pass


# Ticket ledger

class LedgerError(RaffleError):
    """Base exception for ticket ledger errors"""
    pass


class TicketNotFound(LedgerError):
    """Raised when a ticket id does not exist"""

    def __init__(self, ticket_id):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} not found")


class AlreadyAssigned(LedgerError):
    """Raised when a ticket already belongs to an artist"""

    def __init__(self, ticket_id, current_artist_id=None):
        self.ticket_id = ticket_id
        self.current_artist_id = current_artist_id
        super().__init__(f"Ticket {ticket_id} is already assigned to artist {current_artist_id}")


# Allocation

class AllocationError(RaffleError):
    """Base exception for allocation errors"""
    pass


class InvalidAllocationRequest(AllocationError, ValueError):
    """Raised when requested quantities are malformed"""
    pass


class InsufficientUnassignedTickets(AllocationError):
    """Raised when a request asks for more tickets than the participant has free"""

    def __init__(self, participant_id, raffle_id, requested, available):
        self.participant_id = participant_id
        self.raffle_id = raffle_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Participant {participant_id} requested {requested} tickets "
            f"but only has {available} unassigned in raffle {raffle_id}"
        )


class UnknownArtist(RaffleError):
    """Raised when an artist is not part of the raffle (allocation and draws)"""

    def __init__(self, raffle_id, artist_id):
        self.raffle_id = raffle_id
        self.artist_id = artist_id
        super().__init__(f"Artist {artist_id} is not part of raffle {raffle_id}")


class ConcurrentAllocationConflict(AllocationError):
    """Raised when another request claimed one of the batch's tickets first"""

    def __init__(self, participant_id, raffle_id, ticket_id=None):
        self.participant_id = participant_id
        self.raffle_id = raffle_id
        self.ticket_id = ticket_id
        super().__init__(
            f"Ticket {ticket_id} was claimed concurrently; allocation for participant "
            f"{participant_id} in raffle {raffle_id} was rolled back"
        )


# Winner draws

class DrawError(RaffleError):
    """Base exception for winner draw errors"""
    pass


class NoEligibleTickets(DrawError):
    """Raised when an artist has no assigned tickets to draw from"""

    def __init__(self, raffle_id, artist_id):
        self.raffle_id = raffle_id
        self.artist_id = artist_id
        super().__init__(f"Artist {artist_id} has no tickets in raffle {raffle_id}")


class WinnerAlreadySelected(DrawError):
    """
    Signals that the artist already has a recorded winner.

    Not a failure: `winner` holds the existing result so a repeated draw can
    show it instead of an error.
    """

    def __init__(self, raffle_id, artist_id, winner):
        self.raffle_id = raffle_id
        self.artist_id = artist_id
        self.winner = winner
        super().__init__(
            f"Winner already selected for artist {artist_id} in raffle {raffle_id}: "
            f"ticket #{winner.get('ticket_number')}"
        )
