from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from config import settings


def _to_date(value: Any) -> date | str | None:
    """Normalize a stored or submitted date. Unparsable text is kept as-is for re-display."""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return str(value)


class Author:
    """A person who wrote one or more books in the catalog."""

    def __init__(self, first_name: str, family_name: str, date_of_birth: date | None = None,
                 date_of_death: date | None = None, id: str | None = None) -> None:
        self.id = id
        self.first_name = first_name
        self.family_name = family_name
        self.date_of_birth = date_of_birth
        self.date_of_death = date_of_death

    @property
    def name(self) -> str:
        # Empty rather than a stray comma when a name part is missing
        if not self.first_name or not self.family_name:
            return ""
        return f"{self.family_name}, {self.first_name}"

    @property
    def url(self) -> str:
        return f"{settings.catalog_prefix}/author/{self.id}"

    @property
    def lifespan(self) -> str:
        born = self.date_of_birth.isoformat() if isinstance(self.date_of_birth, date) else ""
        died = self.date_of_death.isoformat() if isinstance(self.date_of_death, date) else ""
        return f"{born} - {died}"

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return self.name

    def __repr__(self) -> str:
        return f"Author(id={self.id!r}, name={self.name!r})"

    def __eq__(self, other: Any) -> bool:
        """Compare authors by identity and user-supplied fields."""
        if not isinstance(other, Author):
            return NotImplemented
        return (
            self.id == other.id
            and self.first_name == other.first_name
            and self.family_name == other.family_name
            and self.date_of_birth == other.date_of_birth
            and self.date_of_death == other.date_of_death
        )

    def __hash__(self) -> int:
        return hash((self.id, self.first_name, self.family_name))

    @classmethod
    def from_form(cls, values: Mapping[str, Any], author_id: str | None = None) -> "Author":
        """Build a candidate Author from sanitized form values.

        On create ``author_id`` is None and the store assigns one; on update the
        original id is kept so the write replaces the existing record.
        """
        return cls(
            first_name=values.get("first_name") or "",
            family_name=values.get("family_name") or "",
            date_of_birth=values.get("date_of_birth") or None,
            date_of_death=values.get("date_of_death") or None,
            id=author_id,
        )

    def to_document(self) -> dict:
        """Fields persisted in the authors collection."""
        doc = {"first_name": self.first_name, "family_name": self.family_name}
        if isinstance(self.date_of_birth, date):
            doc["date_of_birth"] = self.date_of_birth.isoformat()
        if isinstance(self.date_of_death, date):
            doc["date_of_death"] = self.date_of_death.isoformat()
        return doc

    @staticmethod
    def from_document(data: Mapping[str, Any]) -> "Author":
        return Author(
            first_name=data.get("first_name", ""),
            family_name=data.get("family_name", ""),
            date_of_birth=_to_date(data.get("date_of_birth")),
            date_of_death=_to_date(data.get("date_of_death")),
            id=data.get("id"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "first_name": self.first_name,
            "family_name": self.family_name,
            "date_of_birth": self.date_of_birth,
            "date_of_death": self.date_of_death,
            "name": self.name,
            "lifespan": self.lifespan,
            "url": self.url,
        }
