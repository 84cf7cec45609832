"""Flatten wager slips into one row per bid line."""

from __future__ import annotations

from collections.abc import Iterable

from .models import BidLine, FlattenedBidRow, WagerSlip


def project_line(slip: WagerSlip, line: BidLine) -> FlattenedBidRow:
    market = line.market
    return FlattenedBidRow(
        slip_id=slip.slip_id,
        position=line.position,
        user_id=slip.user.user_id,
        name=slip.user.name,
        mobile_number=slip.user.mobile_number,
        bid_kind=line.bid_kind,
        digit=line.digit,
        panna=line.panna,
        stake=line.stake,
        session=line.session,
        game_id=market.market_id if market else None,
        game_name=market.name if market else None,
        created_at=slip.created_at,
    )


def project(slips: Iterable[WagerSlip]) -> list[FlattenedBidRow]:
    """Stable flat-map: slip order first, then bid line order within each slip."""

    return [project_line(slip, line) for slip in slips for line in slip.lines]


__all__ = ["project", "project_line"]
