"""Quote endpoint for booking drafts."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.rate_limits import DEFAULT_RATE_DEP
from app.models.user import User
from app.schemas.booking import BookingDraft
from app.schemas.quote import QuoteRead
from app.services import booking_service

router = APIRouter(prefix="/public/quotes", tags=["public"])


@router.post(
    "",
    response_model=QuoteRead,
    summary="Price a booking draft",
    dependencies=[DEFAULT_RATE_DEP],
)
async def quote_draft(
    payload: BookingDraft,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    current_user: Annotated[User | None, Depends(deps.get_optional_user)],
) -> QuoteRead:
    """Return the draft's price breakdown; rejected discounts become warnings."""
    try:
        priced = await booking_service.price_draft(
            session, draft=payload, customer=current_user
        )
    except LookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)
        ) from exc
    return QuoteRead.model_validate(priced.quote)
