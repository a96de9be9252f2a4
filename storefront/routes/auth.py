from fastapi import APIRouter, Depends, Request, status

from shared.security_config import limiter
from shared.utils import SuccessResponse, verify_refresh_token
from storefront.deps import Services, current_user, get_services, user_id_of
from storefront.schemas import (
    PasswordChange, ProfileUpdate, RefreshTokenRequest, Token, UserLogin, UserRegister, UserResponse,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=SuccessResponse[UserResponse], status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register(user: UserRegister, request: Request, services: Services = Depends(get_services)):
    created = await services.users.register(user)
    return SuccessResponse(data=UserResponse.model_validate(created), message="User registered successfully")


@router.post("/login", response_model=SuccessResponse[Token])
@limiter.limit("5/minute")
async def login(user_credentials: UserLogin, request: Request, services: Services = Depends(get_services)):
    user, token = await services.users.authenticate(user_credentials.login, user_credentials.password)
    request.state.user_id = str(user.id)
    return SuccessResponse(data=token)


@router.post("/refresh", response_model=SuccessResponse[Token])
async def refresh_token(body: RefreshTokenRequest, services: Services = Depends(get_services)):
    payload = verify_refresh_token(body.refresh_token)
    return SuccessResponse(data=await services.users.refresh(user_id_of(payload)))


@router.get("/me", response_model=SuccessResponse[UserResponse])
async def me(payload: dict = Depends(current_user), services: Services = Depends(get_services)):
    user = await services.users.get_user(user_id_of(payload))
    return SuccessResponse(data=UserResponse.model_validate(user))


@router.put("/me", response_model=SuccessResponse[UserResponse])
async def update_me(profile: ProfileUpdate, payload: dict = Depends(current_user), services: Services = Depends(get_services)):
    user = await services.users.update_profile(user_id_of(payload), profile)
    return SuccessResponse(data=UserResponse.model_validate(user), message="Profile updated successfully")


@router.post("/change-password", response_model=SuccessResponse[dict])
async def change_password(body: PasswordChange, payload: dict = Depends(current_user), services: Services = Depends(get_services)):
    await services.users.change_password(user_id_of(payload), body.current_password, body.new_password)
    return SuccessResponse(message="Password changed successfully")
