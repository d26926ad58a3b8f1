"""Data shapes shared by the extractor, the normalization stage and the API."""

import math
import mimetypes
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_THOUSANDS_RE = re.compile(r"^\d{1,3}(,\d{3})+(\.\d+)?$")
_DECIMAL_COMMA_RE = re.compile(r"^\d+,\d{1,2}$")


def _normalize_price_text(text: str) -> Optional[str]:
    """
    "1,200" -> "1200", "12,50" -> "12.50" (decimal comma).
    Any other comma usage is ambiguous and yields None.
    """
    text = text.strip()
    if "," not in text:
        return text
    if _THOUSANDS_RE.match(text):
        return text.replace(",", "")
    if _DECIMAL_COMMA_RE.match(text):
        return text.replace(",", ".")
    return None


class MenuItem(BaseModel):
    """
    One dish or drink read off a menu photo.

    Attributes are snake_case; the wire format (model output and API
    responses) uses the camelCase aliases.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    name: str = Field(min_length=1)
    korean_name: str = Field(alias="koreanName")
    description: str = ""
    price: Optional[float] = None
    currency: Optional[str] = None
    converted_price: Optional[int] = Field(default=None, alias="convertedPrice", ge=0)

    @field_validator("description", mode="before")
    @classmethod
    def _empty_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValueError(f"price must be a number, got {type(value).__name__}")
        if isinstance(value, str):
            # "15.50" is fine; "market price" / "시가" means not determinable
            value = _normalize_price_text(value)
            if value is None:
                return None
        try:
            value = float(value)
        except (OverflowError, ValueError):
            return None
        if not math.isfinite(value) or value <= 0:
            return None
        return value

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError(f"currency must be a string, got {type(value).__name__}")
        code = value.strip().upper()
        return code or None

    @property
    def has_price(self) -> bool:
        return self.price is not None and self.currency is not None

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class MenuImage:
    """Raw uploaded menu photo."""

    data: bytes
    content_type: str
    filename: Optional[str] = None

    @classmethod
    def from_path(cls, path: str, content_type: Optional[str] = None) -> "MenuImage":
        with open(path, "rb") as f:
            data = f.read()
        if content_type is None:
            content_type = mimetypes.guess_type(path)[0] or "image/jpeg"
        return cls(data=data, content_type=content_type, filename=path)

    @property
    def size_kb(self) -> float:
        return len(self.data) / 1024
