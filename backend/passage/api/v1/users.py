"""Current-user endpoints."""

from fastapi import APIRouter

from passage.api.deps import Accounts, CurrentUser, CurrentUserId
from passage.core.responses import DataResponse
from passage.schemas.user import UserRead, UserUpdate

router = APIRouter()


@router.get("/me")
async def get_me(user: CurrentUser) -> DataResponse[UserRead]:
    """Return the signed-in user."""
    return DataResponse(data=UserRead.model_validate(user))


@router.patch("/me")
async def update_me(
    body: UserUpdate,
    user_id: CurrentUserId,
    accounts: Accounts,
) -> DataResponse[UserRead]:
    """Change the signed-in user's name."""
    user = await accounts.update_profile(
        user_id, first_name=body.first_name, last_name=body.last_name
    )
    return DataResponse(data=UserRead.model_validate(user))
