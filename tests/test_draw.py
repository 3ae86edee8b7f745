"""
Test winner draws
Idempotency, fairness and the public winner views
"""

import random

import pytest
from sqlalchemy import text

from artist_raffle.allocation import AllocationAssigner
from artist_raffle.config import DEFAULT_SIMULATION_RUNS
from artist_raffle.database import (
    add_artist_to_raffle,
    create_participant,
    create_raffle,
    issue_tickets,
    set_raffle_status,
)
from artist_raffle.draw import WinnerDraw, format_display_name, pick_winning_index
from artist_raffle.exceptions import (
    NoEligibleTickets,
    RaffleClosed,
    RaffleNotFound,
    UnknownArtist,
    WinnerAlreadySelected,
)
from artist_raffle.ledger import TicketLedger


class FixedIndex:
    """rng stand-in that always picks the same position"""

    def __init__(self, index):
        self.index = index

    def randrange(self, n):
        return self.index


class RacingLedger(TicketLedger):
    """Lets a rival draw commit between reading the pool and writing the winner"""

    def __init__(self, engine, rival_ticket_id):
        super().__init__(engine)
        self.rival_ticket_id = rival_ticket_id

    def list_tickets_for_artist(self, raffle_id, artist_id, conn=None):
        pool = super().list_tickets_for_artist(raffle_id, artist_id, conn=conn)
        conn.execute(text("""
            UPDATE raffle_artists
            SET winner_ticket_id = :ticket_id, winner_selected_at = CURRENT_TIMESTAMP
            WHERE raffle_id = :raffle_id AND artist_id = :artist_id
        """), {'ticket_id': self.rival_ticket_id, 'raffle_id': raffle_id, 'artist_id': artist_id})
        return pool


@pytest.fixture
def allocated(engine, raffle, second_participant):
    """Artist A holds #1-#2, artist B holds #3-#5 and #6-#8"""
    assigner = AllocationAssigner(engine)
    assigner.assign_tickets(raffle.participant, raffle.id, {raffle.artist_a: 2, raffle.artist_b: 3})
    assigner.assign_tickets(second_participant.id, raffle.id, {raffle.artist_b: 3})
    return raffle


def test_winner_comes_from_artist_pool(engine, allocated, notifier):
    draw = WinnerDraw(engine, notifier=notifier)
    winner = draw.select_winner(allocated.id, allocated.artist_b, drawn_by="admin")

    ticket = TicketLedger(engine).get_ticket(winner['ticket_id'])
    assert ticket['artist_id'] == allocated.artist_b
    assert winner['ticket_number'] in range(3, 9)
    assert winner['already_selected'] is False
    assert winner['pool_size'] == 6
    assert winner['drawn_by'] == "admin"
    assert winner['selected_at'] is not None


def test_winner_is_the_drawn_position(engine, allocated):
    draw = WinnerDraw(engine, rng=FixedIndex(4))
    winner = draw.select_winner(allocated.id, allocated.artist_b)
    assert winner['ticket_number'] == 7
    assert winner['participant_name'] == "Omar Okafor"
    assert winner['display_name'] == "Omar O."


def test_second_draw_returns_the_same_winner(engine, allocated, notifier):
    draw = WinnerDraw(engine, notifier=notifier)
    first = draw.select_winner(allocated.id, allocated.artist_a)
    second = draw.select_winner(allocated.id, allocated.artist_a)

    assert second['ticket_id'] == first['ticket_id']
    assert second['already_selected'] is True
    assert len(notifier.calls) == 1
    assert len(draw.get_draw_history(allocated.id)) == 1


def test_second_draw_can_raise(engine, allocated):
    draw = WinnerDraw(engine)
    first = draw.select_winner(allocated.id, allocated.artist_a)

    with pytest.raises(WinnerAlreadySelected) as exc_info:
        draw.select_winner(allocated.id, allocated.artist_a, raise_if_selected=True)
    assert exc_info.value.winner['ticket_id'] == first['ticket_id']


def test_winner_survives_later_allocations(engine, allocated):
    draw = WinnerDraw(engine)
    first = draw.select_winner(allocated.id, allocated.artist_a)

    latecomer = create_participant(engine, "Lee Park")
    issue_tickets(engine, allocated.id, latecomer, 4)
    AllocationAssigner(engine).assign_tickets(latecomer, allocated.id, {allocated.artist_a: 4})

    assert draw.select_winner(allocated.id, allocated.artist_a)['ticket_id'] == first['ticket_id']
    assert draw.get_winner(allocated.id, allocated.artist_a)['ticket_id'] == first['ticket_id']


def test_lost_race_returns_the_rival_winner(engine, allocated, notifier):
    rival = allocated.tickets[0]['id']
    draw = WinnerDraw(engine, ledger=RacingLedger(engine, rival), notifier=notifier, rng=FixedIndex(1))

    winner = draw.select_winner(allocated.id, allocated.artist_a)

    assert winner['ticket_id'] == rival
    assert winner['already_selected'] is True
    assert notifier.calls == []
    assert draw.get_draw_history(allocated.id) == []


def test_empty_pool(engine, raffle):
    draw = WinnerDraw(engine)
    with pytest.raises(NoEligibleTickets):
        draw.select_winner(raffle.id, raffle.artist_a)
    assert draw.get_winner(raffle.id, raffle.artist_a) is None


def test_artist_outside_raffle(engine, allocated):
    with pytest.raises(UnknownArtist):
        WinnerDraw(engine).select_winner(allocated.id, 999)


def test_missing_raffle(engine, allocated):
    with pytest.raises(RaffleNotFound):
        WinnerDraw(engine).select_winner(404, allocated.artist_a)


def test_draft_raffle_cannot_draw(engine, raffle):
    draft_id = create_raffle(engine, "Not Open Yet")
    add_artist_to_raffle(engine, draft_id, raffle.artist_a)
    with pytest.raises(RaffleClosed) as exc_info:
        WinnerDraw(engine).select_winner(draft_id, raffle.artist_a)
    assert exc_info.value.operation == 'winner draw'


def test_ended_raffle_can_draw(engine, allocated):
    set_raffle_status(engine, allocated.id, 'ended')
    winner = WinnerDraw(engine).select_winner(allocated.id, allocated.artist_a)
    assert winner['ticket_number'] in (1, 2)


def test_notifier_receives_winner(engine, allocated, notifier):
    winner = WinnerDraw(engine, notifier=notifier).select_winner(allocated.id, allocated.artist_a)
    assert notifier.calls == [{
        'raffle_id': allocated.id,
        'artist_id': allocated.artist_a,
        'ticket_id': winner['ticket_id'],
        'ticket_number': winner['ticket_number'],
        'participant_id': allocated.participant,
        'participant_name': "Paula Prints",
        'selected_at': winner['selected_at'],
    }]


def test_notification_failure_keeps_the_winner(engine, allocated, failing_notifier):
    draw = WinnerDraw(engine, notifier=failing_notifier)
    winner = draw.select_winner(allocated.id, allocated.artist_a)
    assert draw.get_winner(allocated.id, allocated.artist_a)['ticket_id'] == winner['ticket_id']


def test_each_ticket_equally_likely():
    rng = random.Random(1234)
    pool_size, runs = 6, 60000
    counts = [0] * pool_size
    for _ in range(runs):
        counts[pick_winning_index(pool_size, rng)] += 1

    expected = runs / pool_size
    chi_square = sum((c - expected) ** 2 / expected for c in counts)
    # 5 degrees of freedom, p=0.001
    assert chi_square < 20.52


def test_empty_pool_has_no_index():
    with pytest.raises(ValueError):
        pick_winning_index(0, random.Random())


def test_simulation_records_nothing(engine, allocated):
    draw = WinnerDraw(engine, rng=random.Random(7))
    sim = draw.simulate_draw(allocated.id, allocated.artist_b, num_simulations=12000)

    assert sim['pool_size'] == 6
    assert sum(r['actual_wins'] for r in sim['results']) == 12000
    for result in sim['results']:
        assert result['expected_wins'] == 2000
        assert abs(result['variance_percent']) < 10
    assert draw.get_winner(allocated.id, allocated.artist_b) is None


def test_simulation_needs_tickets(engine, raffle):
    with pytest.raises(NoEligibleTickets):
        WinnerDraw(engine).simulate_draw(raffle.id, raffle.artist_a, num_simulations=10)


def test_ticket_odds(engine, allocated, second_participant):
    draw = WinnerDraw(engine)
    odds = draw.get_ticket_odds(allocated.id, allocated.artist_b, second_participant.id)
    assert odds['participant_tickets'] == 3
    assert odds['pool_size'] == 6
    assert odds['probability_percent'] == pytest.approx(50.0)
    assert odds['odds'] == "3/6"

    assert draw.get_ticket_odds(allocated.id, allocated.artist_a, second_participant.id) is None


def test_winners_listing(engine, allocated):
    draw = WinnerDraw(engine, rng=FixedIndex(0))
    draw.select_winner(allocated.id, allocated.artist_a)
    draw.select_winner(allocated.id, allocated.artist_b)

    winners = draw.list_winners(allocated.id)
    assert [w['artist_name'] for w in winners] == ["Artist B", "Artist A"]
    assert [w['ticket_number'] for w in winners] == [3, 1]
    assert {w['participant_name'] for w in winners} == {"Paula P."}


def test_draw_history(engine, allocated):
    draw = WinnerDraw(engine, rng=FixedIndex(1))
    draw.select_winner(allocated.id, allocated.artist_a, drawn_by="ops")

    history = draw.get_draw_history(allocated.id)
    assert len(history) == 1
    assert history[0]['artist_name'] == "Artist A"
    assert history[0]['ticket_number'] == 2
    assert history[0]['pool_size'] == 2
    assert history[0]['drawn_index'] == 1
    assert history[0]['drawn_by'] == "ops"


@pytest.mark.parametrize("name, style, expected", [
    ("Maya Lin Chen", 'first_last_initial', "Maya C."),
    ("Cher", 'first_last_initial', "Cher"),
    ("  ana   ruiz ", 'first_last_initial', "ana R."),
    ("Maya Lin Chen", 'full', "Maya Lin Chen"),
    ("", 'first_last_initial', None),
    (None, 'full', None),
])
def test_display_names(name, style, expected):
    assert format_display_name(name, style) == expected


@pytest.mark.parametrize("runs", [0, -3])
def test_simulation_needs_at_least_one_run(engine, allocated, runs):
    with pytest.raises(ValueError):
        WinnerDraw(engine).simulate_draw(allocated.id, allocated.artist_a, num_simulations=runs)


def test_simulation_defaults_when_runs_omitted(engine, allocated):
    sim = WinnerDraw(engine, rng=random.Random(5)).simulate_draw(allocated.id, allocated.artist_a)
    assert sim['num_simulations'] == DEFAULT_SIMULATION_RUNS
