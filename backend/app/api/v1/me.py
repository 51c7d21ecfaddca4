"""Endpoints scoped to the signed-in customer."""

from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.models.user import User
from app.schemas.booking import BookingRead
from app.schemas.promotions import (
    LoyaltyValidateRequest,
    LoyaltyVerdictRead,
    MembershipRead,
)
from app.services import availability_service, booking_service, promotion_service

router = APIRouter(prefix="/me", tags=["me"])


@router.post(
    "/loyalty/validate",
    response_model=LoyaltyVerdictRead,
    summary="Check a loyalty points redemption",
)
async def validate_loyalty(
    payload: LoyaltyValidateRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> LoyaltyVerdictRead:
    verdict = await promotion_service.validate_loyalty(
        session,
        customer_id=current_user.id,
        points=payload.points,
        subtotal=payload.subtotal,
        currency=payload.currency or deps.settings.default_currency,
    )
    return LoyaltyVerdictRead.model_validate(verdict)


@router.get(
    "/membership",
    response_model=MembershipRead,
    summary="Active membership discount with a provider",
)
async def get_membership(
    provider_slug: str,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> MembershipRead:
    try:
        provider = await availability_service.get_active_provider(
            session, provider_slug
        )
    except LookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc
    verdict = await promotion_service.resolve_membership(
        session, customer_id=current_user.id, provider_id=provider.id
    )
    return MembershipRead.model_validate(verdict)


@router.post(
    "/bookings/{booking_id}/cancel",
    response_model=BookingRead,
    summary="Cancel one of my bookings",
)
async def cancel_booking(
    booking_id: uuid.UUID,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> BookingRead:
    try:
        booking = await booking_service.cancel_booking(
            session, booking_id=booking_id, customer_id=current_user.id
        )
    except LookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    return BookingRead.model_validate(booking)
