"""Term vocabulary with document frequencies and smoothed IDF weights."""

from pydantic import BaseModel, Field

# term -> non-negative weight; absent terms are implicitly 0
SparseVector = dict[str, float]


class VocabularyEntry(BaseModel):
    term: str
    document_frequency: int = Field(ge=1)
    inverse_document_frequency: float = Field(gt=0.0)


class Vocabulary(BaseModel):
    """A complete vocabulary generation.

    Vectors are only comparable when computed under the same generation.
    """
    generation: int = 0
    document_count: int = 1
    entries: dict[str, VocabularyEntry] = {}

    def idf(self, term: str) -> float | None:
        entry = self.entries.get(term)
        return entry.inverse_document_frequency if entry else None

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, term: object) -> bool:
        return term in self.entries
