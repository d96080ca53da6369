"""
HTTP API - FastAPI application over the order and laundromat services.

Routes stay thin: resolve the caller, convert the request into domain
objects, call one service method, serialize the result. Domain errors
are mapped to status codes in one exception handler.
"""

import logging
from contextlib import asynccontextmanager
from datetime import date, timedelta
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ...domain.enums import ActorRole, OrderStatus
from ...domain.errors import AccessDenied, LifecycleError, ValidationError
from ...domain.value_objects import Actor
from ...orchestration.orchestrator import ApplicationOrchestrator
from .schemas import (
    AssignRequest,
    LaundromatIn,
    OrderCreateRequest,
    RetryRequest,
    TransitionBody,
    WeightRequest,
    availability_to_dict,
    history_to_dict,
    intake_to_dict,
    laundromat_to_dict,
    order_to_dict,
)
from .session import Session, SessionSerializer, SignedSessionSerializer

logger = logging.getLogger(__name__)

HTTP_STATUS: dict[str, int] = {
    "validation_error": 400,
    "payment_failed": 402,
    "access_denied": 403,
    "order_not_found": 404,
    "laundromat_not_found": 404,
    "no_coverage": 409,
    "capacity_exceeded": 409,
    "invalid_transition": 409,
    "storage_failed": 502,
    "delivery_failed": 502,
}


def error_body(error: LifecycleError) -> dict:
    return {
        "error": error.message,
        "code": error.code,
        "retry_safe": error.retry_safe,
        "state_changed": error.state_changed,
        "details": error.details,
    }


def create_app(
    orchestrator: ApplicationOrchestrator,
    session_serializer: SessionSerializer | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        orchestrator: Wired services
        session_serializer: Token decoder (signed tokens from the config secret if None)

    Returns:
        FastAPI app
    """
    config = orchestrator.config
    serializer = session_serializer or SignedSessionSerializer(
        config.session_secret, ttl=timedelta(hours=config.session_ttl_hours)
    )
    orders = orchestrator.orders
    laundromats = orchestrator.laundromats

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        orchestrator.shutdown()

    app = FastAPI(title="Laundry Ops API", lifespan=lifespan)
    app.state.orchestrator = orchestrator

    # ----- Error mapping -----

    @app.exception_handler(LifecycleError)
    async def lifecycle_error_handler(_request: Request, exc: LifecycleError):
        status = HTTP_STATUS.get(exc.code, 500)
        if status >= 500 or exc.state_changed:
            logger.warning("[API] %s: %s (state_changed=%s)", exc.code, exc.message, exc.state_changed)
        return JSONResponse(status_code=status, content=error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        error = ValidationError("Invalid request", details={"errors": errors})
        return JSONResponse(status_code=400, content=error_body(error))

    # ----- Session -----

    def current_session(request: Request) -> Optional[Session]:
        header = request.headers.get("Authorization", "")
        if not header:
            return None
        scheme, _, token = header.partition(" ")
        if scheme.lower() != "bearer" or not token:
            raise AccessDenied("Authorization header must be a Bearer token")
        session = serializer.loads(token.strip())
        if session.role is ActorRole.CUSTOMER and session.customer_id is None:
            customer = orchestrator.customers.find_by_auth_user(session.user_id)
            if customer is not None:
                session = Session(
                    user_id=session.user_id,
                    role=session.role,
                    customer_id=customer.customer_id,
                    expires_at=session.expires_at,
                )
        return session

    def require_actor(session: Optional[Session] = Depends(current_session)) -> Actor:
        if session is None:
            raise AccessDenied("Sign in required")
        return session.to_actor()

    def order_actor(order_id: str, token: Optional[str], session: Optional[Session]) -> Actor:
        """Session caller, or a guest holding the order's magic-link token."""
        if session is not None:
            return session.to_actor()
        if token:
            order = orders.get_with_token(order_id, token)
            return Actor(role=ActorRole.CUSTOMER, customer_id=order.customer_id)
        raise AccessDenied("Sign in or use your order link", details={"order_id": order_id})

    # ----- Routes -----

    @app.get("/health")
    def health():
        return {"status": "ok", "database": orchestrator.database.location}

    @app.post("/api/orders", status_code=201)
    def create_order(body: OrderCreateRequest, session: Optional[Session] = Depends(current_session)):
        actor = session.to_actor() if session else None
        result = orders.create(body.to_intake(), actor)
        return intake_to_dict(result)

    @app.get("/api/orders")
    def list_orders(
        status: Optional[OrderStatus] = Query(None),
        laundromat_id: Optional[str] = Query(None),
        day: Optional[date] = Query(None, alias="date"),
        actor: Actor = Depends(require_actor),
    ):
        found = orders.list_orders(actor, status=status, laundromat_id=laundromat_id, day=day)
        return {"orders": [order_to_dict(order) for order in found], "count": len(found)}

    @app.get("/api/orders/{order_id}")
    def get_order(
        order_id: str,
        token: Optional[str] = Query(None),
        session: Optional[Session] = Depends(current_session),
    ):
        if session is None and token:
            return order_to_dict(orders.get_with_token(order_id, token))
        actor = order_actor(order_id, token, session)
        return order_to_dict(orders.get(order_id, actor))

    @app.get("/api/orders/{order_id}/history")
    def order_history(
        order_id: str,
        token: Optional[str] = Query(None),
        session: Optional[Session] = Depends(current_session),
    ):
        actor = order_actor(order_id, token, session)
        return {"order_id": order_id, "history": [history_to_dict(h) for h in orders.history(order_id, actor)]}

    @app.post("/api/orders/{order_id}/status")
    def change_status(
        order_id: str,
        body: TransitionBody,
        token: Optional[str] = Query(None),
        session: Optional[Session] = Depends(current_session),
    ):
        actor = order_actor(order_id, token, session)
        request = body.root
        order = orders.update_status(order_id, OrderStatus(request.status), actor, request.to_payload())
        return order_to_dict(order)

    @app.post("/api/orders/{order_id}/payment/authorize")
    def authorize_payment(
        order_id: str,
        token: Optional[str] = Query(None),
        session: Optional[Session] = Depends(current_session),
    ):
        actor = order_actor(order_id, token, session)
        return order_to_dict(orders.authorize_payment(order_id, actor))

    @app.post("/api/orders/{order_id}/weight")
    def record_weight(order_id: str, body: WeightRequest, actor: Actor = Depends(require_actor)):
        return order_to_dict(orders.record_weight(order_id, body.weight_lb, actor))

    @app.post("/api/orders/{order_id}/assign")
    def assign_order(order_id: str, body: AssignRequest, actor: Actor = Depends(require_actor)):
        return order_to_dict(orders.reassign(order_id, body.laundromat_id, actor))

    @app.get("/api/capacity")
    def capacity(postal_code: str = Query(...), day: date = Query(..., alias="date")):
        candidates = laundromats.capacity(postal_code, day)
        open_slots = [c for c in candidates if c.remaining > 0]
        response = {
            "postal_code": postal_code,
            "date": day.isoformat(),
            "laundromats": [availability_to_dict(c) for c in open_slots],
        }
        if open_slots:
            response["status"] = "available"
        else:
            response["status"] = "no_coverage"
            response["reason"] = "no_capacity" if candidates else "outside_service_area"
        return response

    @app.get("/api/laundromats")
    def list_laundromats():
        return {"laundromats": [laundromat_to_dict(item) for item in laundromats.list_all()]}

    @app.put("/api/laundromats/{laundromat_id}")
    def upsert_laundromat(laundromat_id: str, body: LaundromatIn, actor: Actor = Depends(require_actor)):
        saved = laundromats.upsert(body.to_laundromat(laundromat_id), actor)
        return laundromat_to_dict(saved)

    @app.post("/api/admin/notifications/retry")
    def retry_notifications(body: Optional[RetryRequest] = None, actor: Actor = Depends(require_actor)):
        if actor.role not in {ActorRole.ADMIN, ActorRole.SYSTEM}:
            raise AccessDenied("Only admins may retry notifications")
        report = orchestrator.retry_notifications(body.max_attempts if body else None)
        return {
            "attempted": report.attempted,
            "delivered": report.delivered,
            "still_failing": report.still_failing,
        }

    return app
