"""
Artist Raffle Package
Ticket allocation to artists and one fair winner draw per artist
"""

__version__ = "1.0.0"

# Export main components
from .allocation import AllocationAssigner
from .draw import WinnerDraw
from .ledger import TicketLedger
from .stats import StatsAggregator

__all__ = [
    'AllocationAssigner',
    'WinnerDraw',
    'TicketLedger',
    'StatsAggregator'
]
