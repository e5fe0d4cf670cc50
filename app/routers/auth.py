from fastapi import APIRouter, Depends, status

from ..core.dependencies import get_auth_service, get_current_user
from ..models import User
from ..schemas import CreateUser, LoginRequest, LoginResponse, UserProfileResponse, UserResponse
from ..services import AuthService


router = APIRouter()


@router.post('/register', response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: CreateUser,
    service: AuthService = Depends(get_auth_service),
):
    return await service.register(data)


@router.post('/login', response_model=LoginResponse)
async def login(
    credentials: LoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    return await service.login(credentials.email, credentials.password)


@router.get('/profile', response_model=UserProfileResponse)
async def get_profile(current_user: User = Depends(get_current_user)):
    return current_user


@router.post('/setup-initial-admin', response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def setup_initial_admin(
    data: CreateUser,
    service: AuthService = Depends(get_auth_service),
):
    """
    Create the first admin user. Only works while no admin account exists.
    """
    return await service.create_initial_admin(data)
