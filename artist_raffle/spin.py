"""
Spin Preview
Cosmetic ticket-number sequence for the operator's draw animation
"""

import random

from .config import SPIN_SEQUENCE_LENGTH


def spin_sequence(ticket_numbers, length=SPIN_SEQUENCE_LENGTH, rng=None, land_on=None):
    """
    Build the ticket numbers an animation flashes through

    Purely visual: nothing here reads or influences the real draw. Pass
    `land_on` only once the real winner has come back, to end on it.

    Args:
        ticket_numbers: Ticket numbers in the artist's pool
        length: Frames before the landing frame
        rng: Random source (random.Random by default)
        land_on: Winning ticket number to finish on (optional)

    Returns:
        list: Ticket numbers, one per frame
    """
    if not ticket_numbers:
        return [land_on] if land_on is not None else []

    rng = rng or random.Random()
    frames = [rng.choice(ticket_numbers) for _ in range(length)]
    if land_on is not None:
        frames.append(land_on)
    return frames
