from __future__ import annotations

import os
import uuid
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import schemas
from .database import init_db
from .logging_config import AccessLogMiddleware, configure_logging, logger
from .repository import MenuItemNotFoundError, MenuItemRecord, MenuRepository


def get_repository() -> MenuRepository:
    return MenuRepository()


def _validated_item_id(item_id: str) -> str:
    # Stored ids are lowercase and hyphenated; other spellings never match.
    try:
        canonical = str(uuid.UUID(item_id))
    except ValueError:
        canonical = None
    if canonical != item_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid menu ID (must be UUID)",
        )
    return item_id


def _to_schema(record: MenuItemRecord) -> schemas.MenuItem:
    return schemas.MenuItem(**record.__dict__)


def create_app() -> FastAPI:
    configure_logging()
    init_db()
    app = FastAPI(
        title="Menu Service",
        version="0.1.0",
        description="Manages the food truck menu and serves item lookups to the order service.",
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

    @app.exception_handler(RequestValidationError)
    async def validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Request validation failed", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal error"})

    @app.get("/healthz", response_model=schemas.HealthResponse, tags=["system"])
    async def health() -> schemas.HealthResponse:
        return schemas.HealthResponse(status="ok")

    @app.get("/menu", response_model=List[schemas.MenuItem], tags=["menu"])
    async def list_items(
        repo: MenuRepository = Depends(get_repository),
    ) -> List[schemas.MenuItem]:
        return [_to_schema(record) for record in repo.list_items()]

    @app.get("/menu/{item_id}", response_model=schemas.MenuItem, tags=["menu"])
    async def get_item(
        item_id: str, repo: MenuRepository = Depends(get_repository)
    ) -> schemas.MenuItem:
        record = repo.get_item(_validated_item_id(item_id))
        if record is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found.")
        return _to_schema(record)

    @app.post(
        "/menu",
        response_model=schemas.MenuItem,
        status_code=status.HTTP_201_CREATED,
        tags=["menu"],
    )
    async def create_item(
        payload: schemas.CreateMenuItemRequest,
        repo: MenuRepository = Depends(get_repository),
    ) -> schemas.MenuItem:
        record = repo.create_item(payload.name, payload.price, payload.available)
        logger.info("Created menu item id=%s name=%s price=%.2f", record.id, record.name, record.price)
        return _to_schema(record)

    @app.put("/menu/{item_id}", response_model=schemas.MenuItem, tags=["menu"])
    async def update_item(
        item_id: str,
        payload: schemas.UpdateMenuItemRequest,
        repo: MenuRepository = Depends(get_repository),
    ) -> schemas.MenuItem:
        try:
            record = repo.update_item(
                _validated_item_id(item_id),
                name=payload.name,
                price=payload.price,
                available=payload.available,
            )
        except MenuItemNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        logger.info("Updated menu item id=%s available=%s", record.id, record.available)
        return _to_schema(record)

    @app.delete(
        "/menu/{item_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
        tags=["menu"],
    )
    async def delete_item(
        item_id: str, repo: MenuRepository = Depends(get_repository)
    ) -> Response:
        try:
            repo.delete_item(_validated_item_id(item_id))
        except MenuItemNotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
        logger.info("Deleted menu item id=%s", item_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app
