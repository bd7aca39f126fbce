import argparse
import logging
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from matchcore.config import LOG_LEVEL
from matchcore.database import Base, SessionLocal, engine
from matchcore.deps import get_matching_context
from matchcore import models  # noqa: F401
from matchcore.services.drops import drop_one_match_per_user
from matchcore.services.ingestion import ingest_with_options, run_ingestion_set, run_match_for_unmatched_users
from matchcore.services.seeding import seed_dummy_users


def _test_user_flag(value: str) -> bool | None:
    return {"all": None, "test": True, "real": False}[value]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run matching jobs")
    sub = parser.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="create a match set from active users")
    ingest.add_argument("--users", choices=["all", "test", "real"], default="all")
    ingest.add_argument("--run", action="store_true", help="process the new set immediately")

    run = sub.add_parser("run", help="process every pair of a match set")
    run.add_argument("match_set_id")

    sub.add_parser("drop", help="drop one approved match per user")

    unmatched = sub.add_parser("unmatched", help="match users without an approved, undropped match")
    unmatched.add_argument("--run", action="store_true", help="process the new set immediately")

    seed = sub.add_parser("seed", help="seed dummy users and the default configuration")
    seed.add_argument("--n-users", type=int, default=20)
    seed.add_argument("--seed", type=int, default=42)
    seed.add_argument("--real-users", action="store_true")
    seed.add_argument("--no-profiles", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    Base.metadata.create_all(bind=engine)
    ctx = get_matching_context()

    if args.command == "seed":
        with SessionLocal() as db:
            summary = seed_dummy_users(
                ctx,
                db,
                n_users=args.n_users,
                seed=args.seed,
                is_test_user=not args.real_users,
                with_profiles=not args.no_profiles,
            )
        print("Seed completed")
        print(f"- config_id: {summary['config_id']}")
        print(f"- users_created: {summary['users_created']}")
        return 0

    if args.command == "drop":
        with SessionLocal() as db:
            dropped = drop_one_match_per_user(ctx, db)
        print(f"Dropped {len(dropped)} matches")
        return 0

    if args.command == "run":
        summary = run_ingestion_set(ctx, SessionLocal, args.match_set_id)
        print(f"Processed {summary.total} pairs: {summary.succeeded} ok, {summary.failed} failed, {summary.cancelled} cancelled, {summary.unfinished} unfinished")
        return 0 if summary.failed == 0 and not summary.timed_out else 1

    with SessionLocal() as db:
        if args.command == "ingest":
            match_set = ingest_with_options(ctx, db, is_test_user=_test_user_flag(args.users))
        else:
            match_set = run_match_for_unmatched_users(ctx, db)

    if match_set is None:
        print("Fewer than 2 unmatched users, nothing to do")
        return 0

    print(f"Match set {match_set.id} created with {match_set.number_of_participants} participants")
    if args.run:
        summary = run_ingestion_set(ctx, SessionLocal, match_set.id)
        print(f"Processed {summary.total} pairs: {summary.succeeded} ok, {summary.failed} failed, {summary.cancelled} cancelled, {summary.unfinished} unfinished")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
