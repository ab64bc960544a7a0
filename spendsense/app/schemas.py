from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field

from .utils import is_missing


class CategorizeRequest(BaseModel):
    text: Optional[str] = None
    categories: Optional[Any] = None

    @property
    def is_complete(self) -> bool:
        return not is_missing(self.text) and not is_missing(self.categories)


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    categories: Optional[Any] = None
    # passed through to the prompt verbatim
    entries: Optional[Any] = None
    currency: Optional[Any] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")

    @property
    def is_complete(self) -> bool:
        return not is_missing(self.prompt) and not is_missing(self.categories)
