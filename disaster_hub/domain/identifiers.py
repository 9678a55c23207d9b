from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from bson import ObjectId


@dataclass(frozen=True, eq=False)
class DocumentId:
    """
    Identifier of a stored document: either a native ObjectId or an external string.

    Historical data mixes both representations, so every lookup by identifier goes
    through candidates(): the literal value first, then its alternate form.
    Two ids are equal when their canonical strings are equal.
    """

    value: ObjectId | str

    @classmethod
    def parse(cls, raw: Any) -> "DocumentId":
        if isinstance(raw, DocumentId):
            return raw
        if isinstance(raw, ObjectId):
            return cls(raw)
        if raw is None:
            raise ValueError("document id is missing")
        text = str(raw).strip()
        if not text:
            raise ValueError("document id is empty")
        return cls(text)

    @property
    def is_native(self) -> bool:
        return isinstance(self.value, ObjectId)

    def canonical(self) -> str:
        return str(self.value)

    def candidates(self) -> list[ObjectId | str]:
        if isinstance(self.value, ObjectId):
            return [self.value, str(self.value)]
        if ObjectId.is_valid(self.value):
            return [self.value, ObjectId(self.value)]
        return [self.value]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DocumentId):
            return self.canonical() == other.canonical()
        if isinstance(other, (ObjectId, str)):
            return self.canonical() == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.canonical())

    def __str__(self) -> str:
        return self.canonical()
