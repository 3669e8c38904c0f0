import argparse
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from matrimony import models  # noqa: F401  registers tables on Base.metadata
from matrimony.database import Base, SessionLocal, engine
from matrimony.services.seeding import seed_profiles


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed synthetic matrimony profiles")
    parser.add_argument("--n-users", type=int, default=100)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--reset", action="store_true")
    parser.add_argument("--create-tables", action="store_true")
    args = parser.parse_args()

    if args.create_tables:
        Base.metadata.create_all(engine)

    with SessionLocal() as db:
        summary = seed_profiles(db, n_users=args.n_users, seed=args.seed, reset=args.reset)

    print("Seed completed")
    for k, v in summary.items():
        print(f"- {k}: {v}")


if __name__ == "__main__":
    main()
