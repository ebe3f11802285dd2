from __future__ import annotations

from typing import Dict, Optional

from pydantic import BaseModel, Field

from vpr_core.filters import ALL


class FilterStateModel(BaseModel):
    year: Optional[str] = ALL
    grade: Optional[str] = ALL
    subject: Optional[str] = ALL
    municipality: Optional[str] = ALL
    school: Optional[str] = ALL


class FilterChangeModel(BaseModel):
    current: FilterStateModel = Field(default_factory=FilterStateModel)
    changes: Dict[str, Optional[str]] = Field(default_factory=dict)


class MarkRecordModel(BaseModel):
    participants: float = 0
    mark2: float = 0
    mark3: float = 0
    mark4: float = 0
    mark5: float = 0


class ScoreRecordModel(BaseModel):
    participants: float = 0
    scores: Dict[str, float] = Field(default_factory=dict)

