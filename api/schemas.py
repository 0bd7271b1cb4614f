from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from ktlo.filters import ALL, ALL_STATUSES


class ActiveFilterModel(BaseModel):
    category: str
    value: Optional[str] = None


class TaskFiltersModel(BaseModel):
    search: str = ""
    statuses: List[str] = Field(default_factory=lambda: list(ALL_STATUSES))
    # Empty means "latest fiscal year in the data".
    fiscal_year: str = ""
    active: Optional[ActiveFilterModel] = None


class DatabaseFiltersModel(BaseModel):
    environment: str = ALL
    active: Optional[ActiveFilterModel] = None


class MetaListResponse(BaseModel):
    values: List[str]
