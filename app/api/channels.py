"""
Public payment channel listing.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.order import Side
from app.schemas.channel import PublicChannelResponse
from app.services.channel_service import ChannelService

router = APIRouter()


@router.get("", response_model=list[PublicChannelResponse])
async def list_channels(
    side: Side = Query(Side.BUY, description="BUY or SELL"),
    db: AsyncSession = Depends(get_db),
):
    """Visible, non-archived channels with the commission for *side*."""
    return await ChannelService(db).list_public(side)
