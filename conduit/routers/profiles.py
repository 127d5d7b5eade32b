from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.auth import AuthToken
from conduit.database import get_db
from conduit.dependencies import get_auth, get_authorization
from conduit.schemas import ProfileResponse
from conduit.usecases import profiles

router = APIRouter(prefix="/api/profiles", tags=["profiles"])

@router.get("/{username}", response_model=ProfileResponse)
async def get_profile(
    username: str,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return ProfileResponse(profile=await profiles.fetch_profile(db, auth, authorization, username))

@router.post("/{username}/follow", response_model=ProfileResponse)
async def follow(
    username: str,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return ProfileResponse(profile=await profiles.follow(db, auth, authorization, username))

@router.delete("/{username}/follow", response_model=ProfileResponse)
async def unfollow(
    username: str,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return ProfileResponse(profile=await profiles.unfollow(db, auth, authorization, username))
