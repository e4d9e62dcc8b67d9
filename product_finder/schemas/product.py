import math
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChunkType(str, Enum):
    NAME = "name"
    DESCRIPTION = "description"
    BRAND = "brand"
    CATEGORY = "category"
    PRICE = "price"
    SPECIFICATION = "specification"
    FEATURE = "feature"
    IMAGE = "image"
    GENERIC = "generic"


# Tipos que aceitam várias entradas distintas por produto (sem deduplicação)
MULTI_VALUE_TYPES = {ChunkType.SPECIFICATION, ChunkType.FEATURE}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _finite_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"expected a number, got {value!r}")
    if not math.isfinite(number):
        raise ValueError(f"expected a finite number, got {value!r}")
    return number


class Product(BaseModel):
    """Catalog item as parsed from an XML or JSON record.

    Numeric fields arrive loosely typed ("12", 12.0, " 3.5 ") and are
    normalized here; ``id`` is mandatory because every vector row is keyed by it.
    """

    model_config = ConfigDict(extra="ignore")

    id: int = Field(gt=0)
    name: Optional[str] = None
    sku: Optional[str] = None
    description: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = None
    image_url: Optional[str] = None
    rating: Optional[float] = None
    stock: Optional[int] = None
    specifications: dict[str, str] = Field(default_factory=dict)
    features: List[str] = Field(default_factory=list)

    @field_validator("id", "stock", mode="before")
    @classmethod
    def _parse_int(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if value is None or isinstance(value, bool):
            return value
        return int(_finite_float(value))

    @field_validator("price", "rating", mode="before")
    @classmethod
    def _parse_float(cls, value: Any) -> Any:
        value = _blank_to_none(value)
        if value is None or isinstance(value, bool):
            return value
        return _finite_float(value)

    @field_validator("name", "sku", "description", "brand", "category", "image_url", mode="before")
    @classmethod
    def _parse_str(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        return _blank_to_none(value)

    @field_validator("specifications", mode="before")
    @classmethod
    def _parse_specifications(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    @field_validator("features", mode="before")
    @classmethod
    def _parse_features(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return ["" if f is None else str(f) for f in value]
        return value

    @property
    def display_name(self) -> str:
        return self.name or "Unknown product"


class Chunk(BaseModel):
    product_id: int
    product_name: str
    type: ChunkType
    content: str
    field: Optional[str] = None
    vector: List[float] = Field(default_factory=list)


class ParsedProduct(BaseModel):
    """A validated product together with the chunks extracted in the same pass."""

    product: Product
    chunks: List[Chunk]
