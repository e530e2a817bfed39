from fastapi import APIRouter, Depends

from peerflex.schemas.preferences import Preferences, PreferencesUpdate
from peerflex.store.preferences import PreferencesStore
from peerflex.utils.dependencies import get_preferences_store


router = APIRouter(prefix="/preferences", tags=["preferences"])


@router.get("", response_model=Preferences)
async def get_preferences(store: PreferencesStore = Depends(get_preferences_store)):
    return store.get()


@router.patch("", response_model=Preferences)
async def update_preferences(body: PreferencesUpdate, store: PreferencesStore = Depends(get_preferences_store)):
    return store.update(body)
