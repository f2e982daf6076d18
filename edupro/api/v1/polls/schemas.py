from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

MIN_OPTIONS = 2
MAX_OPTIONS = 4


class PollCreate(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=MIN_OPTIONS, max_length=MAX_OPTIONS)

    @field_validator("question")
    @classmethod
    def strip_question(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question must not be blank")
        return v

    @field_validator("options")
    @classmethod
    def strip_options(cls, v: List[str]) -> List[str]:
        cleaned = [o.strip() for o in v]
        if any(not o for o in cleaned):
            raise ValueError("options must not be blank")
        return cleaned


class VoteRequest(BaseModel):
    option_index: int


class PollActiveRequest(BaseModel):
    active: bool


class PollOptionResponse(BaseModel):
    index: int
    text: str
    votes: int = 0


class PollResponse(BaseModel):
    id: str
    tenant_id: str
    question: str
    active: bool
    total_votes: int = 0
    options: List[PollOptionResponse] = Field(default_factory=list)
    voted_user_ids: List[str] = Field(default_factory=list)
    has_voted: bool = False
    created_by: Optional[str] = None
    created_at: datetime
