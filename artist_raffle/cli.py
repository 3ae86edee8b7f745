"""
Admin command line for the artist raffle
Schema setup, stats, winner draws and fairness simulation
"""

import argparse
import json
import os
import sys

from dotenv import load_dotenv
from sqlalchemy import create_engine

from utils.logging_config import setup_logging

from .config import DEFAULT_SIMULATION_RUNS, get_database_url
from .database import setup_raffle_database, verify_raffle_schema
from .draw import WinnerDraw
from .exceptions import RaffleError
from .notifications import RaffleEventPublisher
from .stats import StatsAggregator


def _print_json(data):
    print(json.dumps(data, indent=2, default=str))


def cmd_setup_db(engine, args):
    setup_raffle_database(engine)
    status = verify_raffle_schema(engine)
    for table, exists in status.items():
        symbol = "✓" if exists else "✗"
        print(f"  {symbol} {table}")
    return 0 if all(status.values()) else 1


def cmd_stats(engine, args):
    stats = StatsAggregator(engine)
    _print_json({
        'stats': stats.compute_stats(args.raffle_id),
        'artists': stats.artist_board(args.raffle_id),
    })
    return 0


def cmd_draw(engine, args):
    draw = WinnerDraw(engine, notifier=RaffleEventPublisher())
    winner = draw.select_winner(args.raffle_id, args.artist_id, drawn_by=args.drawn_by)
    if winner['already_selected']:
        print(f"Winner already selected: ticket #{winner['ticket_number']}")
    else:
        print(f"🎉 Winner: ticket #{winner['ticket_number']} ({winner['display_name']})")
    _print_json(winner)
    return 0


def cmd_simulate(engine, args):
    sim = WinnerDraw(engine).simulate_draw(args.raffle_id, args.artist_id, args.runs)
    print(f"Pool size: {sim['pool_size']}, simulations: {sim['num_simulations']}")
    for result in sim['results']:
        print(f"  #{result['ticket_number']}: {result['actual_wins']} wins "
              f"(expected: {result['expected_wins']:.1f}, variance: {result['variance_percent']:+.1f}%)")
    return 0


def cmd_winners(engine, args):
    _print_json(WinnerDraw(engine).list_winners(args.raffle_id))
    return 0


def positive_int(value):
    """argparse type for counts that must be at least 1"""
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser():
    parser = argparse.ArgumentParser(prog="artist_raffle", description="Artist raffle admin tools")
    parser.add_argument('--database-url', help='Overrides DATABASE_URL')
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING, ERROR')
    subparsers = parser.add_subparsers(dest='command', required=True)

    setup = subparsers.add_parser('setup-db', help='Create tables and indices')
    setup.set_defaults(func=cmd_setup_db)

    stats = subparsers.add_parser('stats', help='Ticket counts for a raffle')
    stats.add_argument('raffle_id', type=int)
    stats.set_defaults(func=cmd_stats)

    draw = subparsers.add_parser('draw', help="Draw (or show) an artist's winner")
    draw.add_argument('raffle_id', type=int)
    draw.add_argument('artist_id', type=int)
    draw.add_argument('--drawn-by', help='Admin name for the audit trail')
    draw.set_defaults(func=cmd_draw)

    simulate = subparsers.add_parser('simulate', help='Simulate draws without recording them')
    simulate.add_argument('raffle_id', type=int)
    simulate.add_argument('artist_id', type=int)
    simulate.add_argument('--runs', type=positive_int, default=DEFAULT_SIMULATION_RUNS)
    simulate.set_defaults(func=cmd_simulate)

    winners = subparsers.add_parser('winners', help='Public winners listing')
    winners.add_argument('raffle_id', type=int)
    winners.set_defaults(func=cmd_winners)

    return parser


def main(argv=None, engine=None):
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    logger = setup_logging('artist_raffle', args.log_level, os.getenv('LOG_FILE'))

    if engine is None:
        engine = create_engine(args.database_url or get_database_url(), pool_pre_ping=True)

    try:
        return args.func(engine, args)
    except RaffleError as e:
        logger.error(f"❌ {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
