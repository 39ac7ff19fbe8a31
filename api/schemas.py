from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.filters import as_text


class FilterStateModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    end_year: str = Field(default="", alias="endYear")
    topics: str = ""
    sector: str = ""
    region: str = ""
    pest: str = ""
    source: str = ""
    country: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def coerce_text(cls, value: object) -> str:
        # Years arrive as JSON numbers from some clients.
        return as_text(value)


class StatusResponse(BaseModel):
    state: str
    fetched_at: Optional[str] = None
    error: Optional[str] = None
    raw_records: int = 0
    valid_records: int = 0
    filtered_records: int = 0


class FacetsResponse(BaseModel):
    facets: Dict[str, List[str]]
