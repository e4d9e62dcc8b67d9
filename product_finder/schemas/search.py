from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class SearchResult(BaseModel):
    """Neighbour returned by the vector index; never persisted."""

    product_id: int
    title: str
    distance: float
    type: Optional[str] = None
    content: Optional[str] = None


class ChatTurn(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str = ""
    use_history: bool = False
    history: List[ChatTurn] = Field(default_factory=list)


class ProductMatch(BaseModel):
    product_id: int
    title: str
    distance: float
    type: Optional[str] = None

    @classmethod
    def from_result(cls, result: SearchResult) -> "ProductMatch":
        return cls(
            product_id=result.product_id,
            title=result.title,
            distance=result.distance,
            type=result.type,
        )


class SearchResponse(BaseModel):
    success: bool = True
    query: str
    raw_model_input: Optional[str] = None
    response: str
    products: List[ProductMatch] = Field(default_factory=list)
    history: Optional[List[ChatTurn]] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
