from typing import Optional

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .errors import (
    CodeInvalidError,
    DependencyError,
    DuplicateEntryError,
    EscrowError,
    IntegrityFailure,
    InvalidStateTransitionError,
    NotEligibleError,
    NotResolvedError,
    PoolNotFoundError,
    PoolNotPendingError,
    UserNotFoundError,
    ValidationError,
)
from .logger import setup_logger
from .models import (
    DepositRequest, EventPool, JoinRequest, JoinResponse, LeaderboardRow,
    LedgerHistoryResponse, OpenAccountRequest, ReferRequest, RegisterEventRequest,
    ResolveRequest, SettlementResponse, SubscribeRequest, SubscriptionResponse,
    UserAccount,
)
from .service import PredictionService


def _http_error(e: EscrowError) -> HTTPException:
    if isinstance(e, (PoolNotFoundError, UserNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, NotEligibleError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(e, (DuplicateEntryError, PoolNotPendingError, NotResolvedError, InvalidStateTransitionError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, DependencyError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    elif isinstance(e, (ValidationError, CodeInvalidError)):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, IntegrityFailure):
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail=str(e))


def create_app(service: Optional[PredictionService] = None) -> FastAPI:
    prediction_service = service or PredictionService()
    setup_logger(level=prediction_service.settings.log_level)

    app = FastAPI(
        title="PiPredict Escrow API",
        description="Pooled-stake prediction challenges with atomic entry and exactly-once settlement",
        version="1.0.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.prediction_service = prediction_service

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "pipredict-escrow"}

    @app.post("/users", response_model=UserAccount, status_code=status.HTTP_201_CREATED, tags=["Users"])
    def open_account(request: OpenAccountRequest) -> UserAccount:
        return prediction_service.open_account(request.user_id, request.display_name)

    @app.get("/users/{user_id}", response_model=UserAccount, tags=["Users"])
    def get_user(user_id: str) -> UserAccount:
        try:
            return prediction_service.get_account(user_id)
        except EscrowError as e:
            raise _http_error(e)

    @app.post("/users/{user_id}/deposits", response_model=UserAccount, tags=["Users"])
    def deposit(user_id: str, request: DepositRequest) -> UserAccount:
        try:
            return prediction_service.deposit(user_id, request.amount)
        except EscrowError as e:
            raise _http_error(e)

    @app.get("/users/{user_id}/ledger", response_model=LedgerHistoryResponse, tags=["Users"])
    def get_user_ledger(user_id: str, limit: int = 50, offset: int = 0) -> LedgerHistoryResponse:
        try:
            return prediction_service.get_ledger_history(user_id, limit, offset)
        except EscrowError as e:
            raise _http_error(e)

    @app.post("/pools", response_model=EventPool, status_code=status.HTTP_201_CREATED, tags=["Pools"])
    def register_event(request: RegisterEventRequest) -> EventPool:
        return prediction_service.register_event(
            request.sport, request.external_id, request.home, request.away, request.scheduled_at
        )

    @app.get("/pools", response_model=list[EventPool], tags=["Pools"])
    def list_open_pools() -> list[EventPool]:
        return prediction_service.list_open_pools()

    @app.get("/pools/{pool_id}", response_model=EventPool, tags=["Pools"])
    def get_pool(pool_id: str) -> EventPool:
        try:
            return prediction_service.get_pool(pool_id)
        except EscrowError as e:
            raise _http_error(e)

    @app.post("/pools/{pool_id}/entries", response_model=JoinResponse, status_code=status.HTTP_201_CREATED, tags=["Pools"])
    def join_pool(pool_id: str, request: JoinRequest) -> JoinResponse:
        try:
            return prediction_service.join(pool_id, request.user_id, request.prediction, request.fee)
        except EscrowError as e:
            raise _http_error(e)

    @app.post("/pools/{pool_id}/resolve", response_model=EventPool, tags=["Settlement"])
    def resolve_pool(pool_id: str, request: ResolveRequest) -> EventPool:
        try:
            return prediction_service.resolve(pool_id, request.outcome)
        except EscrowError as e:
            raise _http_error(e)

    @app.post("/pools/{pool_id}/settle", response_model=SettlementResponse, tags=["Settlement"])
    def settle_pool(pool_id: str) -> SettlementResponse:
        try:
            return prediction_service.settle(pool_id)
        except EscrowError as e:
            raise _http_error(e)

    @app.post("/settlements/run", response_model=list[SettlementResponse], tags=["Settlement"])
    def settle_due() -> list[SettlementResponse]:
        return prediction_service.settle_due()

    @app.post("/subscriptions", response_model=SubscriptionResponse, tags=["Subscriptions"])
    def subscribe(request: SubscribeRequest) -> SubscriptionResponse:
        try:
            return prediction_service.subscribe(request.user_id, request.discount_code)
        except EscrowError as e:
            raise _http_error(e)

    @app.post("/referrals", response_model=UserAccount, tags=["Users"])
    def refer(request: ReferRequest) -> UserAccount:
        try:
            return prediction_service.refer(request.referrer_id, request.new_user_id)
        except EscrowError as e:
            raise _http_error(e)

    @app.get("/leaderboard", response_model=list[LeaderboardRow], tags=["Users"])
    def leaderboard(limit: int = 10) -> list[LeaderboardRow]:
        return prediction_service.leaderboard(limit)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
