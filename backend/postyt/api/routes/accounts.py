from fastapi import APIRouter, Depends

from ...services import JsonCredentialStore
from ..deps import get_credential_store, get_current_user


router = APIRouter(prefix="/user", tags=["accounts"])


@router.get("/accounts")
async def list_accounts(
    user_id: str = Depends(get_current_user),
    store: JsonCredentialStore = Depends(get_credential_store),
):
    """List linked accounts per platform for the current user."""
    return {"accounts": store.list_accounts(user_id)}
