"""
API v1 routes.
"""

from fastapi import APIRouter

from placebook.api.v1 import auth
from placebook.schemas.common import ErrorResponse, ValidationErrorResponse

router = APIRouter()

router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"],
    responses={
        400: {"model": ValidationErrorResponse},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
