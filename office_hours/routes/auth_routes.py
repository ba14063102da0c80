from fastapi import APIRouter, Depends

from office_hours.auth.dependencies import get_current_user
from office_hours.models.user import User
from office_hours.schemas import UserPublicResponse

router = APIRouter(tags=['auth'])


class CurrentUserResponse(UserPublicResponse):
    role: str


@router.get('/me', response_model=CurrentUserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
