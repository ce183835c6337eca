"""Environment definitions supplied by the host application."""

from __future__ import annotations

from typing import Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .vendors import Vendor

DATABASE_PLACEHOLDER = "{DATABASE}"

ConnstringFactory = Callable[..., str]


class Environment(BaseModel):
    """A named server with its vendor, connection string and databases."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    vendor: Vendor = Field(alias="type")
    connstring: str | ConnstringFactory
    databases: tuple[str, ...]

    @field_validator("name")
    @classmethod
    def check_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("name cannot be empty")
        return value

    @field_validator("databases")
    @classmethod
    def check_databases(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value:
            raise ValueError("no databases defined")
        return value

    @property
    def default_database(self) -> str:
        """First database in the list; used when none is selected."""

        return self.databases[0]

    def resolve_connstring(self, database: str) -> str:
        """Return the connection string for ``database``.

        A callable connection string is invoked with the environment first;
        every ``{DATABASE}`` placeholder is then replaced.
        """

        template = self.connstring(self) if callable(self.connstring) else self.connstring
        return template.replace(DATABASE_PLACEHOLDER, database)

    def key(self, database: str) -> str:
        return f"{self.name}:{database}"


__all__ = ["ConnstringFactory", "DATABASE_PLACEHOLDER", "Environment"]
