from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from conduit.auth import AuthToken
from conduit.database import get_db
from conduit.dependencies import get_auth, get_authorization
from conduit.schemas import LoginRequest, NewUserRequest, UserResponse, UserUpdateRequest
from conduit.usecases import users

router = APIRouter(prefix="/api", tags=["users"])

@router.post("/users", status_code=201, response_model=UserResponse)
async def register(
    data: NewUserRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
):
    return UserResponse(user=await users.register(db, auth, data.user))

@router.post("/users/login", response_model=UserResponse)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
):
    return UserResponse(user=await users.login(db, auth, data.user))

@router.get("/user", response_model=UserResponse)
async def current_user(
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return UserResponse(user=await users.fetch_current(db, auth, authorization))

@router.put("/user", response_model=UserResponse)
async def update_user(
    data: UserUpdateRequest,
    db: AsyncSession = Depends(get_db),
    auth: AuthToken = Depends(get_auth),
    authorization: str | None = Depends(get_authorization),
):
    return UserResponse(user=await users.update_current(db, auth, authorization, data.user))
