from __future__ import annotations

from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.exception_handlers import http_exception_handler

from . import schemas
from .core.config import settings
from .db import get_db, init_db
from .domain import DEFAULT_CATALOG, BidKind, GameSession, MarketKind
from .errors import (
    BettingError,
    DuplicateMarket,
    DuplicateResult,
    InactiveMarket,
    InvalidValue,
    MissingRate,
    MissingResult,
    NotFound,
)
from .services.bid_service import BidQuery, BidService
from .services.market_service import MarketQuery, MarketService
from .services.result_service import ResultService
from .services.settlement_service import (
    SettlementOutcome,
    SettlementRequest,
    SettlementService,
    WinnerQuery,
)

app = FastAPI(title="Matka Settlement API", version="0.1.0", debug=settings.debug)

_ERROR_STATUS: dict[type[BettingError], int] = {
    InvalidValue: 400,
    InactiveMarket: 400,
    NotFound: 404,
    MissingResult: 404,
    DuplicateResult: 409,
    DuplicateMarket: 409,
    MissingRate: 422,
}

PageLimit = Annotated[
    int, Query(ge=1, le=settings.max_page_size, description="Maximum rows to return")
]
PageOffset = Annotated[int, Query(ge=0)]


@app.on_event("startup")
def on_startup() -> None:
    """Initialize database connections when the API boots."""

    init_db()


@app.exception_handler(BettingError)
async def betting_error_handler(request: Request, exc: BettingError):
    """Report domain failures as HTTP errors carrying a structured detail."""

    status_code = _ERROR_STATUS.get(type(exc), 400)
    return await http_exception_handler(
        request, HTTPException(status_code=status_code, detail=exc.to_dict())
    )


@app.get("/healthz", tags=["system"])
def healthcheck() -> dict[str, str]:
    """Basic readiness probe consumed by infrastructure monitors."""

    return {"status": "ok"}


# ----------------------------------------------------------------------
# Dependencies


def _market_service(db=Depends(get_db)) -> MarketService:
    """Provide the market service wired with a SQLAlchemy session."""

    return MarketService(db)


def _bid_service(db=Depends(get_db)) -> BidService:
    return BidService(db)


def _result_service(db=Depends(get_db)) -> ResultService:
    return ResultService(db)


def _settlement_service(db=Depends(get_db)) -> SettlementService:
    return SettlementService(db)


def _optional_session(value: str | None) -> GameSession | None:
    return GameSession.parse(value)


def _optional_bid_kind(value: str | None) -> BidKind | None:
    return BidKind.parse(value) if value else None


def _bid_query(
    *,
    market_kind: Annotated[str, Query(description="main, starline or galidisawar")] = "main",
    user_id: Annotated[str | None, Query(description="Only bids placed by this user")] = None,
    market_id: Annotated[str | None, Query(description="Only bids on this market")] = None,
    bid_date: Annotated[
        str | None,
        Query(description="Bid date (DD-MM-YYYY)", examples=["05-01-2024"]),
    ] = None,
    session: Annotated[str | None, Query(description="open or close")] = None,
    bid_kind: Annotated[str | None, Query(description="Bid kind filter")] = None,
    limit: PageLimit = settings.default_page_size,
    offset: PageOffset = 0,
) -> BidQuery:
    """Normalize shared bid listing query parameters."""

    return BidQuery(
        market_kind=MarketKind.parse(market_kind),
        user_id=user_id,
        market_id=market_id,
        bid_date=bid_date,
        session=_optional_session(session),
        bid_kind=_optional_bid_kind(bid_kind),
        limit=limit,
        offset=offset,
    )


# ----------------------------------------------------------------------
# Catalogs


@app.get("/catalogs/panna", response_model=schemas.PannaCatalog, tags=["catalogs"])
def panna_catalog():
    """Return the single, double and triple panna sets."""

    values = DEFAULT_CATALOG.panna_values()
    return schemas.PannaCatalog(
        single_panna=values[BidKind.SINGLE_PANNA],
        double_panna=values[BidKind.DOUBLE_PANNA],
        triple_panna=values[BidKind.TRIPLE_PANNA],
    )


@app.get("/catalogs/classify/{value}", response_model=schemas.Classification, tags=["catalogs"])
def classify_value(value: str):
    """Report which catalog a digit, jodi or panna belongs to."""

    return schemas.Classification(value=value, bid_kind=DEFAULT_CATALOG.classify(value))


@app.get("/catalogs/{bid_kind}", response_model=schemas.CatalogValues, tags=["catalogs"])
def catalog_values(bid_kind: str):
    kind = BidKind.parse(bid_kind)
    return schemas.CatalogValues(bid_kind=kind, values=DEFAULT_CATALOG.values(kind))


# ----------------------------------------------------------------------
# Markets and rates


@app.get("/markets", response_model=schemas.MarketList, tags=["markets"])
def list_markets(
    *,
    kind: Annotated[str | None, Query(description="Market kind filter")] = None,
    is_active: Annotated[bool | None, Query(description="Activation filter")] = None,
    limit: PageLimit = settings.default_page_size,
    offset: PageOffset = 0,
    service: MarketService = Depends(_market_service),
):
    """List markets with optional pagination and filtering controls."""

    query = MarketQuery(
        kind=MarketKind.parse(kind) if kind else None,
        is_active=is_active,
        limit=limit,
        offset=offset,
    )
    result = service.list_markets(query)
    return schemas.MarketList(total=result.total, items=list(result.markets))


@app.post("/markets", response_model=schemas.Market, status_code=201, tags=["markets"])
def create_market(payload: schemas.MarketCreate, service: MarketService = Depends(_market_service)):
    return service.create_market(payload)


@app.get("/markets/{market_id}", response_model=schemas.Market, tags=["markets"])
def get_market(market_id: str, service: MarketService = Depends(_market_service)):
    """Retrieve a single market with its weekly schedule."""

    market = service.get_market(market_id)
    if not market:
        raise HTTPException(status_code=404, detail="Market not found")
    return market


@app.patch("/markets/{market_id}/status", response_model=schemas.Market, tags=["markets"])
def set_market_status(
    market_id: str,
    payload: schemas.MarketStatusUpdate,
    service: MarketService = Depends(_market_service),
):
    return service.set_active(market_id, payload.is_active)


@app.get("/rates/{market_kind}", response_model=schemas.RateTable, tags=["rates"])
def get_rates(market_kind: str, service: MarketService = Depends(_market_service)):
    table = service.get_rates(MarketKind.parse(market_kind))
    return schemas.RateTable(market_kind=table.market_kind, rates=dict(table.rates))


@app.put("/rates/{market_kind}", response_model=schemas.RateTable, tags=["rates"])
def set_rates(
    market_kind: str,
    payload: schemas.RateUpdate,
    service: MarketService = Depends(_market_service),
):
    """Upsert payout multipliers; kinds not in the payload keep their rate."""

    table = service.set_rates(MarketKind.parse(market_kind), payload.rates)
    return schemas.RateTable(market_kind=table.market_kind, rates=dict(table.rates))


# ----------------------------------------------------------------------
# Bids


@app.get("/bids", response_model=schemas.BidHistory, tags=["bids"])
def bid_history(
    *,
    query: BidQuery = Depends(_bid_query),
    service: BidService = Depends(_bid_service),
):
    """Flattened bid lines, newest slip first."""

    result = service.history(query)
    return schemas.BidHistory(
        total=result.total,
        items=[schemas.BidRow.model_validate(row) for row in result.rows],
    )


@app.post("/bids", response_model=schemas.SlipCreated, status_code=201, tags=["bids"])
def record_slip(payload: schemas.SlipCreate, service: BidService = Depends(_bid_service)):
    """Record a wager slip after validating every line against the catalogs."""

    slip = service.record_slip(payload)
    return schemas.SlipCreated(
        slip_id=slip.slip_id, total_amount=slip.total_amount, line_count=len(slip.lines)
    )


@app.get("/sales", response_model=schemas.SaleReport, tags=["bids"])
def sales_report(
    *,
    query: BidQuery = Depends(_bid_query),
    service: BidService = Depends(_bid_service),
):
    """Total stake per bid value for the filtered bids."""

    report = service.sales_report(query)
    return schemas.SaleReport(
        market_kind=report.market_kind,
        total_stake=report.total_stake,
        items=[
            schemas.SaleLine(
                bid_kind=item.bid_kind,
                value=item.value,
                total_stake=item.total_stake,
                bid_count=item.bid_count,
            )
            for item in report.items
        ],
    )


# ----------------------------------------------------------------------
# Results


@app.get("/results", response_model=list[schemas.ResultGroup], tags=["results"])
def list_results(
    *,
    market_kind: Annotated[str, Query(description="main, starline or galidisawar")] = "main",
    market_id: Annotated[str | None, Query(description="Only results of this market")] = None,
    service: ResultService = Depends(_result_service),
):
    """Results grouped per (date, market), newest date first."""

    return service.groups(MarketKind.parse(market_kind), market_id=market_id)


@app.get(
    "/results/by-date/{result_date}",
    response_model=list[schemas.ResultGroup],
    tags=["results"],
)
def results_by_date(
    result_date: str,
    market_kind: Annotated[str, Query(description="main, starline or galidisawar")] = "main",
    service: ResultService = Depends(_result_service),
):
    return service.groups(MarketKind.parse(market_kind), result_date=result_date)


@app.post("/results", response_model=schemas.Result, status_code=201, tags=["results"])
def declare_result(payload: schemas.ResultCreate, service: ResultService = Depends(_result_service)):
    return service.declare(payload)


@app.delete("/results/{result_id}", status_code=204, tags=["results"])
def delete_result(result_id: str, service: ResultService = Depends(_result_service)):
    service.delete(result_id)
    return Response(status_code=204)


# ----------------------------------------------------------------------
# Settlement


def _settlement_request(payload: schemas.SettlementRequest) -> SettlementRequest:
    return SettlementRequest(
        market_kind=payload.market_kind,
        market_id=payload.market_id,
        result_date=payload.result_date,
        session=payload.session,
    )


def _settlement_payload(outcome: SettlementOutcome) -> schemas.Settlement:
    transactions = {winner.line_key: winner.transaction_id for winner in outcome.persisted}
    report = outcome.report
    winners = []
    for winner in report.winners:
        item = schemas.Winner.model_validate(winner)
        if winner.line_key in transactions:
            item.transaction_id = transactions[winner.line_key]
        winners.append(item)

    return schemas.Settlement(
        market_id=outcome.request.market_id,
        result_date=outcome.request.result_date,
        session=outcome.request.session,
        dry_run=outcome.dry_run,
        evaluated_rows=report.evaluated_rows,
        winners=winners,
        skipped=[
            schemas.SkippedLine(
                slip_id=skipped.row.slip_id,
                position=skipped.row.position,
                bid_kind=skipped.row.bid_kind,
                reason=skipped.reason,
            )
            for skipped in report.skipped
        ],
        total_stake=float(report.total_stake),
        total_payout=float(report.total_payout),
        persisted=len(outcome.persisted),
        already_settled=outcome.already_settled,
    )


@app.post("/settlements/preview", response_model=schemas.Settlement, tags=["settlements"])
def preview_settlement(
    payload: schemas.SettlementRequest,
    service: SettlementService = Depends(_settlement_service),
):
    """Compute winners for a declared result without writing anything."""

    return _settlement_payload(service.preview(_settlement_request(payload)))


@app.post("/settlements", response_model=schemas.Settlement, tags=["settlements"])
def run_settlement(
    payload: schemas.SettlementRequest,
    service: SettlementService = Depends(_settlement_service),
):
    """Persist winners and credit wallets; repeating the call changes nothing."""

    return _settlement_payload(service.run(_settlement_request(payload)))


@app.get("/winners", response_model=schemas.WinnerHistory, tags=["settlements"])
def winner_history(
    *,
    market_kind: Annotated[str, Query(description="main, starline or galidisawar")] = "main",
    user_id: Annotated[str | None, Query(description="Only winnings of this user")] = None,
    result_date: Annotated[str | None, Query(description="Result date (DD-MM-YYYY)")] = None,
    market_id: Annotated[str | None, Query(description="Only winnings of this market")] = None,
    limit: PageLimit = settings.default_page_size,
    offset: PageOffset = 0,
    service: SettlementService = Depends(_settlement_service),
):
    result = service.winner_history(
        WinnerQuery(
            market_kind=MarketKind.parse(market_kind),
            user_id=user_id,
            result_date=result_date,
            market_id=market_id,
            limit=limit,
            offset=offset,
        )
    )
    return schemas.WinnerHistory(
        total=result.total,
        items=[schemas.WinnerHistoryItem.model_validate(entry) for entry in result.winners],
    )
