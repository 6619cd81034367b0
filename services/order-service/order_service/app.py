from __future__ import annotations

import os
from typing import Iterator
from zoneinfo import ZoneInfo

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import schemas
from .counter import is_valid_order_id
from .database import init_db
from .logging_config import AccessLogMiddleware, configure_logging, logger
from .menu_client import MenuClient, MenuServiceError
from .repository import OrderRecord, OrderRepository
from .service import (
    CreateOrderCommand,
    MenuItemUnavailableError,
    OrderNotFoundError,
    OrderService,
    OrderValidationError,
    UpdateOrderCommand,
)


def get_repository() -> OrderRepository:
    return OrderRepository()


def build_menu_client() -> Iterator[MenuClient]:
    base_url = os.environ.get("MENU_SERVICE_URL", "http://menu-service:8081")
    timeout = float(os.environ.get("MENU_SERVICE_TIMEOUT", "5"))
    client = MenuClient(base_url, timeout=timeout)
    try:
        yield client
    finally:
        client.close()


def build_timezone() -> ZoneInfo | None:
    name = os.environ.get("ORDER_TIMEZONE")
    return ZoneInfo(name) if name else None


def _validated_order_id(order_id: str) -> str:
    if not is_valid_order_id(order_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid order ID format (must be YYYYMMDD-####)",
        )
    return order_id


def _to_summary(record: OrderRecord) -> schemas.OrderSummary:
    return schemas.OrderSummary(**record.__dict__)


def _register_exception_handlers(app: FastAPI) -> None:
    def client_error(status_code: int):
        async def handler(_: Request, exc: Exception) -> JSONResponse:
            return JSONResponse(status_code=status_code, content={"detail": str(exc)})

        return handler

    app.add_exception_handler(OrderValidationError, client_error(status.HTTP_400_BAD_REQUEST))
    app.add_exception_handler(MenuItemUnavailableError, client_error(status.HTTP_400_BAD_REQUEST))
    app.add_exception_handler(OrderNotFoundError, client_error(status.HTTP_404_NOT_FOUND))

    @app.exception_handler(RequestValidationError)
    async def validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Request validation failed", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(MenuServiceError)
    async def menu_unavailable(request: Request, exc: MenuServiceError) -> JSONResponse:
        logger.error("Menu service failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": "Menu service unavailable"},
        )

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})


def create_app() -> FastAPI:
    configure_logging()
    init_db()
    app = FastAPI(
        title="Order Service",
        version="0.1.0",
        description="Validates orders against the menu and assigns daily order numbers.",
    )
    allowed_origins = [
        origin.strip() for origin in os.environ.get("ALLOWED_ORIGINS", "*").split(",")
    ]
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    _register_exception_handlers(app)

    def get_service(
        repo: OrderRepository = Depends(get_repository),
        menu_client: MenuClient = Depends(build_menu_client),
        tz: ZoneInfo | None = Depends(build_timezone),
    ) -> OrderService:
        return OrderService(repo, menu_client, tz=tz)

    @app.get("/healthz", response_model=schemas.HealthResponse)
    async def healthz() -> schemas.HealthResponse:
        return schemas.HealthResponse(status="ok")

    @app.post(
        "/orders",
        response_model=schemas.OrderSummary,
        status_code=status.HTTP_201_CREATED,
    )
    def create_order(
        payload: schemas.CreateOrderRequest,
        service: OrderService = Depends(get_service),
    ) -> schemas.OrderSummary:
        record = service.place_order(
            CreateOrderCommand(
                items=[item.model_dump() for item in payload.items],
                customer_id=payload.customer_id,
                payment_method=payload.payment_method,
            )
        )
        return _to_summary(record)

    @app.post("/orders/{order_id}", status_code=status.HTTP_405_METHOD_NOT_ALLOWED)
    async def reject_client_order_id(order_id: str) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            content={"detail": "Do not specify an ID when creating orders. Use POST /orders instead."},
        )

    @app.get("/orders", response_model=list[schemas.OrderSummary])
    def list_orders(
        customer_id: str | None = None,
        limit: int = Query(50, ge=1, le=500),
        repo: OrderRepository = Depends(get_repository),
    ) -> list[schemas.OrderSummary]:
        records = repo.list_orders(customer_id=customer_id, limit=limit)
        return [_to_summary(record) for record in records]

    @app.get("/orders/{order_id}", response_model=schemas.OrderSummary)
    def get_order(
        order_id: str,
        repo: OrderRepository = Depends(get_repository),
    ) -> schemas.OrderSummary:
        record = repo.get_order(_validated_order_id(order_id))
        if record is None:
            raise HTTPException(status_code=404, detail="Order not found")
        return _to_summary(record)

    @app.put("/orders/{order_id}", response_model=schemas.OrderSummary)
    def update_order(
        order_id: str,
        payload: schemas.UpdateOrderRequest,
        service: OrderService = Depends(get_service),
    ) -> schemas.OrderSummary:
        record = service.update_order(
            _validated_order_id(order_id),
            UpdateOrderCommand(
                items=[item.model_dump() for item in payload.items] if payload.items is not None else None,
                payment_method=payload.payment_method,
                status=payload.status,
            ),
        )
        return _to_summary(record)

    return app
