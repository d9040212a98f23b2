"""
SightEd Backend — Account Routes
==================================
"""

from fastapi import APIRouter, Depends

from sighted.schemas.common import ErrorResponse
from sighted.schemas.users import AuthResponse, LoginRequest, RegisterRequest
from sighted.services.user_service import user_service
from sighted.storage import DocumentStore, get_store

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.post(
    "/register",
    status_code=201,
    response_model=AuthResponse,
    responses={
        400: {"description": "Missing field, bad email or short password", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Create an account",
)
async def register(body: RegisterRequest, store: DocumentStore = Depends(get_store)) -> dict:
    return await user_service.register(
        store,
        email=body.email,
        password=body.password,
        first_name=body.firstName,
        last_name=body.lastName,
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={
        400: {"description": "Missing email or password", "model": ErrorResponse},
        401: {"description": "Invalid email or password", "model": ErrorResponse},
    },
    summary="Check email and password",
)
async def login(body: LoginRequest, store: DocumentStore = Depends(get_store)) -> dict:
    return await user_service.login(store, email=body.email, password=body.password)
