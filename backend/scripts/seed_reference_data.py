import argparse
import json
from decimal import Decimal
from pathlib import Path

from loguru import logger

from app import crud
from app.db import init_db, session_scope
from app.domain import BidKind, MarketKind
from app.errors import BettingError
from app.repositories import MarketDayInput

DEFAULT_MARKETS_FILE = Path(__file__).parent / "data" / "markets.json"

# Multipliers derived from the stock "pay N for every M points" rate sheets.
DEFAULT_RATES: dict[MarketKind, dict[BidKind, Decimal]] = {
    MarketKind.MAIN: {
        BidKind.SINGLE_DIGIT: Decimal("10"),
        BidKind.JODI: Decimal("100"),
        BidKind.SINGLE_PANNA: Decimal("160"),
        BidKind.DOUBLE_PANNA: Decimal("320"),
        BidKind.TRIPLE_PANNA: Decimal("100"),
        BidKind.HALF_SANGAM: Decimal("1000"),
        # Stock sheet pays nothing on full sangam until an operator prices it.
        BidKind.FULL_SANGAM: Decimal("0"),
    },
    MarketKind.STARLINE: {
        BidKind.SINGLE_DIGIT: Decimal("9.5"),
        BidKind.SINGLE_PANNA: Decimal("140"),
        BidKind.DOUBLE_PANNA: Decimal("280"),
        BidKind.TRIPLE_PANNA: Decimal("700"),
    },
    MarketKind.GALIDISAWAR: {
        BidKind.LEFT_DIGIT: Decimal("9.5"),
        BidKind.RIGHT_DIGIT: Decimal("140"),
        BidKind.JODI: Decimal("280"),
    },
}


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed markets and default rate tables")
    parser.add_argument(
        "--markets-file",
        type=Path,
        default=DEFAULT_MARKETS_FILE,
        help="JSON list of markets with their weekly schedule",
    )
    parser.add_argument(
        "--skip-rates",
        action="store_true",
        help="Leave existing rate tables untouched",
    )
    return parser.parse_args()


def _load_markets(path: Path) -> list[dict]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"{path} must contain a JSON list of markets")
    return payload


def main() -> None:
    args = parse_args()
    init_db()

    created = 0
    skipped = 0
    with session_scope() as session:
        for entry in _load_markets(args.markets_file):
            kind = MarketKind.parse(entry["kind"])
            name = entry["name"].strip()
            if crud.find_market(session, kind, name) is not None:
                skipped += 1
                continue
            try:
                crud.create_market(
                    session,
                    kind=kind,
                    name=name,
                    is_active=bool(entry.get("is_active", False)),
                    days=[MarketDayInput(**day) for day in entry.get("days", [])],
                )
            except BettingError as exc:
                logger.warning("Skipping market {}: {}", name, exc.message)
                skipped += 1
                continue
            created += 1

        if not args.skip_rates:
            for kind, rates in DEFAULT_RATES.items():
                crud.set_rates(session, kind, rates)
                logger.info("Seeded {} rate table with {} entries", kind.value, len(rates))

    logger.info("Seeding complete: {} markets created, {} skipped", created, skipped)


if __name__ == "__main__":
    main()
