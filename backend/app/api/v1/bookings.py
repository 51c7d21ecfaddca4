"""Booking submission endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.rate_limits import DEFAULT_RATE_DEP
from app.models.user import User
from app.schemas.booking import BookingDraft, BookingRead
from app.services import booking_service

router = APIRouter(prefix="/public/bookings", tags=["bookings"])


@router.post(
    "",
    response_model=BookingRead,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a booking draft",
    dependencies=[DEFAULT_RATE_DEP],
)
async def submit_booking(
    payload: BookingDraft,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User, Depends(deps.get_current_user)],
) -> BookingRead:
    """Re-price the draft server side and persist it if the slot is still free."""
    try:
        booking = await booking_service.create_booking(
            session, customer=current_user, draft=payload
        )
    except booking_service.SlotConflictError as exc:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail=str(exc)
        ) from exc
    except LookupError as exc:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc
    except ValueError as exc:
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    return BookingRead.model_validate(booking)
