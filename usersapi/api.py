"""FastAPI application exposing the ``users`` resource."""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Annotated, Dict, List

import anyio
from fastapi import Depends, FastAPI, Path, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator

from .config import Settings
from .database import Database
from .models import NotFound, User

logger = logging.getLogger("usersapi.api")

INVALID_ID_MESSAGE = "Bad Request - Invalid id"
INVALID_BODY_MESSAGE = "Bad Request - firstName and lastName must be strings"
USER_NOT_FOUND_MESSAGE = "User not found"
USERS_NOT_FOUND_MESSAGE = "Users not found"
INTERNAL_ERROR_MESSAGE = "Internal Server Error"


class UserPayload(BaseModel):
    """Request body for creating or updating a user."""

    first_name: StrictStr = Field(..., alias="firstName")
    last_name: StrictStr = Field(..., alias="lastName")

    @field_validator("first_name", "last_name")
    @classmethod
    def _require_utf8(cls, value: str) -> str:
        # Lone surrogates survive JSON decoding but cannot be stored.
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ValueError("names must be valid UTF-8 text") from exc
        return value


class UserResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    first_name: str = Field(..., alias="firstName")
    last_name: str = Field(..., alias="lastName")
    created: datetime


class MessageResponse(BaseModel):
    message: str


_NOT_FOUND_RESPONSE = {404: {"model": MessageResponse}}
_BAD_REQUEST_RESPONSE = {400: {"model": MessageResponse}}


def user_to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        created=user.created,
    )


def message_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


def validation_message(exc: RequestValidationError) -> str:
    """Pick the client-facing message for a failed request validation.

    An invalid path id takes precedence over an invalid body.
    """

    for error in exc.errors():
        location = error.get("loc") or ()
        if location and location[0] == "path":
            return INVALID_ID_MESSAGE
    return INVALID_BODY_MESSAGE


def parse_user_id(
    user_id: Annotated[str, Path(pattern=r"^[0-9]+$", description="User's ID number")],
) -> int:
    return int(user_id)


UserId = Annotated[int, Depends(parse_user_id)]


def register_user_routes(app: FastAPI, database: Database) -> None:
    """Expose the ``/users`` endpoints on the provided FastAPI application."""

    @app.get(
        "/users",
        response_model=List[UserResponse],
        responses=_NOT_FOUND_RESPONSE,
        summary="Get all users",
    )
    async def list_users():
        result = await anyio.to_thread.run_sync(database.list_users)
        if isinstance(result, NotFound):
            return message_response(status.HTTP_404_NOT_FOUND, USERS_NOT_FOUND_MESSAGE)
        return [user_to_response(user) for user in result.value]

    @app.post(
        "/users",
        response_model=UserResponse,
        responses=_BAD_REQUEST_RESPONSE,
        summary="Create a single user",
    )
    async def create_user(payload: UserPayload):
        result = await anyio.to_thread.run_sync(
            database.create_user, payload.first_name, payload.last_name
        )
        logger.info("Created user %s", result.value.id)
        return user_to_response(result.value)

    @app.get(
        "/users/{user_id}",
        response_model=UserResponse,
        responses={**_BAD_REQUEST_RESPONSE, **_NOT_FOUND_RESPONSE},
        summary="Get a single user",
    )
    async def read_user(user_id: UserId):
        result = await anyio.to_thread.run_sync(database.get_user, user_id)
        if isinstance(result, NotFound):
            return message_response(status.HTTP_404_NOT_FOUND, USER_NOT_FOUND_MESSAGE)
        return user_to_response(result.value)

    @app.patch(
        "/users/{user_id}",
        response_model=UserResponse,
        responses={**_BAD_REQUEST_RESPONSE, **_NOT_FOUND_RESPONSE},
        summary="Update a single user",
    )
    async def update_user(payload: UserPayload, user_id: UserId):
        result = await anyio.to_thread.run_sync(
            database.update_user, user_id, payload.first_name, payload.last_name
        )
        if isinstance(result, NotFound):
            return message_response(status.HTTP_404_NOT_FOUND, USER_NOT_FOUND_MESSAGE)
        logger.info("Updated user %s", user_id)
        return user_to_response(result.value)

    @app.delete(
        "/users/{user_id}",
        responses={**_BAD_REQUEST_RESPONSE, **_NOT_FOUND_RESPONSE},
        summary="Delete a single user",
    )
    async def delete_user(user_id: UserId):
        result = await anyio.to_thread.run_sync(database.delete_user, user_id)
        if isinstance(result, NotFound):
            return message_response(status.HTTP_404_NOT_FOUND, USER_NOT_FOUND_MESSAGE)
        logger.info("Deleted user %s", user_id)
        return Response(status_code=status.HTTP_200_OK)


def register_error_handlers(app: FastAPI) -> None:
    """Map request validation and store failures onto ``{message}`` responses."""

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return message_response(status.HTTP_400_BAD_REQUEST, validation_message(exc))

    @app.exception_handler(sqlite3.Error)
    async def handle_store_error(request: Request, exc: sqlite3.Error) -> JSONResponse:
        logger.error(
            "Error handling %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        return message_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)

    # Runs inside the server-error middleware, which re-raises afterwards so
    # the server logs the traceback.
    @app.exception_handler(Exception)
    async def handle_unexpected_error(_: Request, exc: Exception) -> JSONResponse:
        return message_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)


def create_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
    initialize_database: bool = False,
) -> FastAPI:
    """Instantiate the FastAPI application for the users service."""

    if database is None:
        settings = settings or Settings.from_env()
        database = Database(settings.database_path, log_statements=settings.development)
        database.initialize()
    elif initialize_database:
        database.initialize()

    app = FastAPI(
        title="Users Service",
        description="CRUD operations on the users table",
        version="1.0.0",
        docs_url="/swagger",
        redoc_url=None,
    )
    app.state.database = database

    @app.get("/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    register_user_routes(app, database)
    register_error_handlers(app)

    return app


__all__ = [
    "MessageResponse",
    "UserPayload",
    "UserResponse",
    "create_app",
    "register_error_handlers",
    "register_user_routes",
]
