from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ValidationResult(BaseModel):
    """An external opinion on a quote. Never authoritative on its own."""

    model_config = ConfigDict(populate_by_name=True)

    is_reasonable: bool = Field(alias="isReasonable", strict=True)
    adjusted_price: Optional[float] = Field(default=None, alias="adjustedPrice", strict=True)
    confidence: float = Field(ge=0, le=100, strict=True)
    explanation: str = Field(default="", alias="aiExplanation")
    warnings: List[str] = Field(default_factory=list)
