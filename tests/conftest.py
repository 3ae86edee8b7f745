"""Pytest configuration and fixtures."""

from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine

from artist_raffle.database import (
    add_artist_to_raffle,
    create_artist,
    create_participant,
    create_raffle,
    issue_tickets,
    setup_raffle_database,
)


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database with the raffle schema."""
    engine = create_engine(f"sqlite:///{tmp_path / 'artist_raffle.db'}")
    setup_raffle_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def raffle(engine):
    """Active raffle with artists A and B and one participant holding tickets #1-#5."""
    raffle_id = create_raffle(engine, "Collector Quest", max_tickets=100, status='active')

    artist_a = create_artist(engine, "Artist A", bio="Painter")
    artist_b = create_artist(engine, "Artist B", bio="Printmaker")
    add_artist_to_raffle(engine, raffle_id, artist_a)
    add_artist_to_raffle(engine, raffle_id, artist_b)

    participant = create_participant(engine, "Paula Prints", email="paula@example.com")
    tickets = issue_tickets(engine, raffle_id, participant, 5)

    return SimpleNamespace(
        id=raffle_id,
        artist_a=artist_a,
        artist_b=artist_b,
        participant=participant,
        tickets=tickets,
    )


@pytest.fixture
def second_participant(engine, raffle):
    """Another ticket holder in the same raffle with tickets #6-#8."""
    participant = create_participant(engine, "Omar Okafor", email="omar@example.com")
    tickets = issue_tickets(engine, raffle.id, participant, 3)
    return SimpleNamespace(id=participant, tickets=tickets)


class RecordingNotifier:
    """Collects winner notifications instead of publishing them."""

    def __init__(self):
        self.calls = []

    def publish_winner_selected(self, **payload):
        self.calls.append(payload)
        return True


class FailingNotifier:
    def publish_winner_selected(self, **payload):
        raise RuntimeError("notification service down")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    return FailingNotifier()
