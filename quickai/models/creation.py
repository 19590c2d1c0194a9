"""
quickai/models/creation.py

Creation: a persisted record of one generation result.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class CreationType(str, Enum):
    ARTICLE = "article"
    BLOG_TITLE = "blog-title"
    IMAGE = "image"
    RESUME_REVIEW = "resume-review"


class NewCreation(BaseModel):
    """Row to append after a successful provider call."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    prompt: str
    content: str
    type: CreationType
    publish: bool = False


class Creation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    user_id: str
    prompt: str
    content: str
    type: CreationType
    publish: bool = False
    likes: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def likes_count(self) -> int:
        return len(self.likes)


class LikeToggleResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    creation_id: int
    liked: bool
    likes: List[str]

    @property
    def message(self) -> str:
        return "Creation Liked" if self.liked else "Creation Unliked"
