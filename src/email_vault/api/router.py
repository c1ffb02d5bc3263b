from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from ..errors import CreditBalanceNotFound, GenerationError, SignupFailed, SignupRejected
from ..models.api_models import (
    CreditBalanceResponse,
    ErrorResponse,
    GenerateEmailRequest,
    GenerateEmailResponse,
    HistoryRecordResponse,
    SignupRequest,
    SignupResponse,
    SignupUser,
)
from ..models.user import User
from .dependencies import Services, client_ip, get_current_user, get_services


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["email"])

_error_responses = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post(
    "/generate-email",
    response_model=GenerateEmailResponse,
    response_model_exclude_none=True,
    responses=_error_responses,
)
async def generate_email(
    payload: GenerateEmailRequest,
    services: Services = Depends(get_services),
):
    try:
        result = await services.generation.generate(payload.prompt, payload.auth_token)
    except GenerationError as exc:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
    except Exception as exc:
        logger.exception("Email generation request failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Failed to process email generation request",
                "details": str(exc),
            },
        )
    return GenerateEmailResponse.from_result(result)


@router.post(
    "/signup",
    response_model=SignupResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def signup(
    payload: SignupRequest,
    request: Request,
    services: Services = Depends(get_services),
):
    try:
        user = await services.accounts.signup(
            email=payload.email,
            password=payload.password,
            ip_address=client_ip(request),
        )
    except (SignupRejected, SignupFailed) as exc:
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    return SignupResponse(
        success=True,
        message=(
            f"User registered successfully with {services.accounts.signup_credits} credits"
        ),
        user=SignupUser(id=user.id, email=user.email),
    )


@router.get("/history", response_model=List[HistoryRecordResponse])
async def list_history(
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> List[HistoryRecordResponse]:
    records = await services.history.list(user.id)
    return [
        HistoryRecordResponse(
            id=r.id or "", prompt=r.prompt, email=r.email, created_at=r.created_at
        )
        for r in records
    ]


@router.delete("/history/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_history(
    record_id: str,
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> Response:
    # delete_by_id does not check ownership, so scope it to the caller here
    record = await services.history.get(record_id)
    if record is None or record.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found")
    await services.history.delete_by_id(record_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/credits", response_model=CreditBalanceResponse)
async def get_credits(
    user: User = Depends(get_current_user),
    services: Services = Depends(get_services),
) -> CreditBalanceResponse:
    try:
        credits = await services.credits.check(user.id)
    except CreditBalanceNotFound:
        credits = 0
    return CreditBalanceResponse(user_id=user.id, credits=credits)
