from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict

from .normalizer import ENTRY_FIELDS


class SaveRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    customer_id: Optional[Union[str, int]] = None
    roast_handle: Optional[str] = None
    entry_id: Optional[Union[str, int]] = None
    action: Optional[str] = None

    # Entry fields are taken as sent and sanitized by the service.
    rating: Any = None
    brew_method: Any = None
    grinding_from_whole_bean: Any = None
    grind_notes: Any = None
    grinder_setting: Any = None
    brew_recipe: Any = None
    notes: Any = None
    outcome: Any = None

    def entry_fields(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in ENTRY_FIELDS}


class SaveResponse(BaseModel):
    ok: bool = True
    entry_id: Optional[str] = None
    reset: Optional[bool] = None


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
