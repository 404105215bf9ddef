"""
Users API endpoints.

Outcome -> HTTP mapping:
- Ok          -> 200 (201 on create, 204 on delete)
- Domain      -> 400 on read/create, 500 on list, 404 on delete; error JSON body
- Unexpected  -> 500 with an empty body; the fault is only logged
Anything raised inside a handler is treated like an Unexpected outcome.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Path, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from core.results import Domain, Ok, Outcome, Unexpected
from core.services import ServiceRegistry

from .dependencies import get_registry, users_service

logger = logging.getLogger(__name__)

router = APIRouter()

# `users.id` is a SERIAL (int4) column.
INT4_MIN = -(2**31)
INT4_MAX = 2**31 - 1


def _json(status_code: int, content: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def _server_error() -> Response:
    return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


def _respond(
    outcome: Outcome,
    *,
    operation: str,
    ok_status: int,
    domain_status: int,
    ok_body: Any = None,
) -> Response:
    if isinstance(outcome, Unexpected):
        logger.error(
            "%s_failed fault_type=%s",
            operation,
            outcome.fault_type,
            exc_info=outcome.fault,
        )
        return _server_error()
    if isinstance(outcome, Domain):
        return _json(domain_status, outcome.error.to_dict())
    if isinstance(outcome, Ok):
        if ok_status == status.HTTP_204_NO_CONTENT:
            return Response(status_code=ok_status)
        return _json(ok_status, outcome.payload if ok_body is None else ok_body)
    raise TypeError(f"Unknown outcome: {outcome!r}")


@router.get("/users/{user_id}")
async def get_user(
    user_id: int = Path(..., ge=INT4_MIN, le=INT4_MAX),
    registry: ServiceRegistry = Depends(get_registry),
) -> Response:
    try:
        outcome = await users_service(registry).get_user(user_id)
        return _respond(
            outcome,
            operation="get_user",
            ok_status=status.HTTP_200_OK,
            domain_status=status.HTTP_400_BAD_REQUEST,
        )
    except Exception:
        logger.exception("get_user_crashed user_id=%s", user_id)
        return _server_error()


@router.get("/users")
async def list_users(
    registry: ServiceRegistry = Depends(get_registry),
) -> Response:
    try:
        outcome = await users_service(registry).get_all_users()
        ok_body = None
        if isinstance(outcome, Ok):
            users = outcome.payload
            ok_body = {"count": len(users), "users": users}
        # A domain error here is never the caller's fault.
        return _respond(
            outcome,
            operation="list_users",
            ok_status=status.HTTP_200_OK,
            domain_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            ok_body=ok_body,
        )
    except Exception:
        logger.exception("list_users_crashed")
        return _server_error()


@router.post("/users")
async def create_user(
    record: dict[str, Any] = Body(...),
    registry: ServiceRegistry = Depends(get_registry),
) -> Response:
    try:
        outcome = await users_service(registry).create_user(record)
        return _respond(
            outcome,
            operation="create_user",
            ok_status=status.HTTP_201_CREATED,
            domain_status=status.HTTP_400_BAD_REQUEST,
        )
    except Exception:
        logger.exception("create_user_crashed")
        return _server_error()


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int = Path(..., ge=INT4_MIN, le=INT4_MAX),
    registry: ServiceRegistry = Depends(get_registry),
) -> Response:
    try:
        outcome = await users_service(registry).delete_user(user_id)
        # The resource is absent, so a domain error is a 404.
        return _respond(
            outcome,
            operation="delete_user",
            ok_status=status.HTTP_204_NO_CONTENT,
            domain_status=status.HTTP_404_NOT_FOUND,
        )
    except Exception:
        logger.exception("delete_user_crashed user_id=%s", user_id)
        return _server_error()
