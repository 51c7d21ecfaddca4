"""Public coupon and gift card validation endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.api.rate_limits import DEFAULT_RATE_DEP
from app.models.provider import Provider
from app.schemas.promotions import (
    CouponValidateRequest,
    CouponVerdictRead,
    GiftCardValidateRequest,
    GiftCardVerdictRead,
)
from app.services import availability_service, promotion_service

router = APIRouter(prefix="/public", tags=["public"], dependencies=[DEFAULT_RATE_DEP])


async def _provider_or_404(session: AsyncSession, slug: str) -> Provider:
    try:
        return await availability_service.get_active_provider(session, slug)
    except LookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc


@router.post(
    "/promotions/validate",
    response_model=CouponVerdictRead,
    summary="Check a coupon code against a subtotal",
)
async def validate_coupon(
    payload: CouponValidateRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> CouponVerdictRead:
    provider = await _provider_or_404(session, payload.provider_slug)
    verdict = await promotion_service.validate_coupon(
        session,
        code=payload.code,
        provider_id=provider.id,
        location_type=payload.location_type,
        location_id=payload.location_id,
        subtotal=payload.subtotal,
    )
    return CouponVerdictRead.model_validate(verdict)


@router.post(
    "/gift-cards/validate",
    response_model=GiftCardVerdictRead,
    summary="Check a gift card balance",
)
async def validate_gift_card(
    payload: GiftCardValidateRequest,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> GiftCardVerdictRead:
    provider = await _provider_or_404(session, payload.provider_slug)
    verdict = await promotion_service.validate_gift_card(
        session,
        code=payload.code,
        provider_id=provider.id,
        subtotal=payload.subtotal,
    )
    return GiftCardVerdictRead.model_validate(verdict)
