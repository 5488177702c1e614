"""Value types shared by the fetcher, query state and the state file."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, RootModel, field_validator


class Result(BaseModel):
    """One search hit. Two results are equal when their ids are equal."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "Id"))
    permalink: str = Field(default="", validation_alias=AliasChoices("permalink", "Permalink"))
    thumbnail: str = Field(default="", validation_alias=AliasChoices("thumbnail", "Thumbnail"))
    title: str = Field(default="", validation_alias=AliasChoices("title", "Title"))
    price: float = Field(default=0.0, ge=0, validation_alias=AliasChoices("price", "Price"))

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        if value is None or value == "":
            raise ValueError("Result id cannot be empty")
        return str(value)

    @field_validator("permalink", "thumbnail", "title", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


class QueryRecord(BaseModel):
    """Persisted form of one query: its parameters and both partitions."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    params: dict[str, str] = Field(
        default_factory=dict, validation_alias=AliasChoices("params", "Params")
    )
    available: dict[str, Result] = Field(
        default_factory=dict, validation_alias=AliasChoices("available", "Available")
    )
    visited: dict[str, Result] = Field(
        default_factory=dict, validation_alias=AliasChoices("visited", "Visited")
    )

    @field_validator("params", mode="before")
    @classmethod
    def _coerce_params(cls, value: Any) -> dict[str, str]:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("params must be a mapping")
        return {str(key): str(item) for key, item in value.items()}

    @field_validator("available", "visited", mode="before")
    @classmethod
    def _coerce_partition(cls, value: Any) -> Any:
        return {} if value is None else value


class StateDocument(RootModel[dict[str, QueryRecord]]):
    """Whole state file: endpoint name -> query record."""

    root: dict[str, QueryRecord] = Field(default_factory=dict)


__all__ = ["QueryRecord", "Result", "StateDocument"]
