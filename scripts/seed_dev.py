import logging
from datetime import datetime, timedelta, timezone

from donordraw.db.engine import get_sessionmaker, make_engine
from donordraw.models import Base
from donordraw.workflows import import_donations, import_prize_packs


def main() -> None:
    """Seed the development database with a sample catalog and ledger."""
    logging.basicConfig(level=logging.INFO)
    engine = make_engine()

    # Drop and recreate all tables for a clean development database.
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    now = datetime.now(timezone.utc)
    week_ago = now - timedelta(days=7)

    with Session.begin() as session:
        import_prize_packs(
            session,
            [
                {
                    "pack": "PP-001",
                    "blockName": "Opening Block",
                    "itemDescription": "Signed poster",
                    "startDate": week_ago.isoformat(),
                    "endDate": now.isoformat(),
                    "minEntryDollars": "25",
                    "multientry": False,
                    "draws": 2,
                },
                {
                    "pack": "PP-002",
                    "blockName": "Marathon Block",
                    "itemDescription": "Game key bundle",
                    "startDate": week_ago.isoformat(),
                    "minEntryDollars": "10",
                    "multientry": True,
                    "draws": 3,
                },
            ],
        )
        import_donations(
            session,
            [
                {
                    "userId": f"user_{index:02d}",
                    "screenName": name,
                    "email": f"{name.lower()}@example.com",
                    "amount": amount,
                    "time": (week_ago + timedelta(hours=index * 12)).isoformat(),
                }
                for index, (name, amount) in enumerate(
                    [
                        ("Alice", "30.00"),
                        ("Bob", "12.50"),
                        ("Carol", "55.00"),
                        ("Alice", "20.00"),
                        ("Dave", "9.99"),
                        ("Erin", "100"),
                    ],
                    start=1,
                )
            ],
        )


if __name__ == "__main__":
    main()
