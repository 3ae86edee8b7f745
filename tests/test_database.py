"""
Test raffle schema setup and the raffle/ticket helpers
Runs against a throwaway SQLite database
"""

import pytest

from artist_raffle.database import (
    REQUIRED_TABLES,
    add_artist_to_raffle,
    create_participant,
    create_raffle,
    get_raffle,
    get_raffle_artist,
    issue_tickets,
    list_raffle_artists,
    set_raffle_status,
    setup_raffle_database,
    verify_raffle_schema,
)
from artist_raffle.exceptions import (
    InvalidStatusTransition,
    IssuanceError,
    RaffleNotFound,
)


def test_schema_has_every_table(engine):
    status = verify_raffle_schema(engine)
    assert set(status) == set(REQUIRED_TABLES)
    assert all(status.values())


def test_setup_is_repeatable(engine):
    assert setup_raffle_database(engine) is True


def test_new_raffle_starts_as_draft(engine):
    raffle_id = create_raffle(engine, "Spring Show")
    raffle = get_raffle(engine, raffle_id)
    assert raffle['name'] == "Spring Show"
    assert raffle['status'] == 'draft'


def test_create_raffle_rejects_unknown_status(engine):
    with pytest.raises(ValueError):
        create_raffle(engine, "Bad", status='paused')


def test_get_raffle_missing_returns_none(engine):
    assert get_raffle(engine, 999) is None


def test_status_follows_lifecycle(engine):
    raffle_id = create_raffle(engine, "Lifecycle")
    assert set_raffle_status(engine, raffle_id, 'active')['status'] == 'active'
    assert set_raffle_status(engine, raffle_id, 'ended')['status'] == 'ended'
    assert get_raffle(engine, raffle_id)['status'] == 'ended'


@pytest.mark.parametrize("start, target", [
    ('draft', 'ended'),
    ('active', 'draft'),
    ('ended', 'active'),
])
def test_status_cannot_skip_or_reverse(engine, start, target):
    raffle_id = create_raffle(engine, "Lifecycle", status=start)
    with pytest.raises(InvalidStatusTransition) as exc_info:
        set_raffle_status(engine, raffle_id, target)
    assert exc_info.value.current == start
    assert get_raffle(engine, raffle_id)['status'] == start


def test_status_change_on_missing_raffle(engine):
    with pytest.raises(RaffleNotFound):
        set_raffle_status(engine, 42, 'active')


def test_ticket_numbers_continue_across_participants(engine, raffle):
    assert [t['ticket_number'] for t in raffle.tickets] == [1, 2, 3, 4, 5]

    other = create_participant(engine, "Omar Okafor")
    more = issue_tickets(engine, raffle.id, other, 2)
    assert [t['ticket_number'] for t in more] == [6, 7]


def test_issuance_respects_max_tickets(engine):
    raffle_id = create_raffle(engine, "Small", max_tickets=3, status='active')
    participant = create_participant(engine, "Ana Ruiz")
    issue_tickets(engine, raffle_id, participant, 2)

    with pytest.raises(IssuanceError):
        issue_tickets(engine, raffle_id, participant, 2)

    assert len(issue_tickets(engine, raffle_id, participant, 1)) == 1


@pytest.mark.parametrize("count", [0, -1])
def test_issuance_needs_positive_count(engine, raffle, count):
    with pytest.raises(IssuanceError):
        issue_tickets(engine, raffle.id, raffle.participant, count)


def test_issuance_for_missing_raffle(engine):
    participant = create_participant(engine, "Ana Ruiz")
    with pytest.raises(RaffleNotFound):
        issue_tickets(engine, 77, participant, 1)


def test_adding_artist_twice_is_a_noop(engine, raffle):
    first = add_artist_to_raffle(engine, raffle.id, raffle.artist_a)
    again = add_artist_to_raffle(engine, raffle.id, raffle.artist_a)
    assert first == again
    assert [a['artist_id'] for a in list_raffle_artists(engine, raffle.id)] == [raffle.artist_a, raffle.artist_b]


def test_adding_artist_to_missing_raffle(engine, raffle):
    with pytest.raises(RaffleNotFound):
        add_artist_to_raffle(engine, 500, raffle.artist_a)


def test_raffle_artist_row(engine, raffle):
    row = get_raffle_artist(engine, raffle.id, raffle.artist_b)
    assert row['artist_id'] == raffle.artist_b
    assert row['winner_ticket_id'] is None
    assert get_raffle_artist(engine, raffle.id, 999) is None
