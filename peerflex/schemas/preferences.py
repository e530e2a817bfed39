from typing import Literal, Optional

from pydantic import BaseModel


Theme = Literal["light", "dark"]
Language = Literal["en", "ta", "te", "hi"]


class Preferences(BaseModel):

    theme: Theme = "light"
    language: Language = "en"
    is_menu_open: bool = False


class PreferencesUpdate(BaseModel):

    theme: Optional[Theme] = None
    language: Optional[Language] = None
    is_menu_open: Optional[bool] = None
