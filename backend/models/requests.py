from pydantic import BaseModel, Field

from models.schemas.matching import CatalogItem


class EvaluateRequest(BaseModel):
    handle: str = Field(..., max_length=300, description="Username, @username or profile URL")


class CatalogLoadRequest(BaseModel):
    items: list[CatalogItem] = Field(..., max_length=10000, description="Job postings to match against")


class SubjectConnectRequest(BaseModel):
    handle: str = Field(..., max_length=300, description="Username, @username or profile URL")
