"""Schemas for chapter generation requests and the outbound SSE stream.

Request field names follow the JSON the browser client already sends
(camelCase Dutch), exposed as snake_case attributes through aliases.
"""

from __future__ import annotations

import json
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


Niveau = Literal["vmbo", "havo", "vwo", "mbo", "hbo", "uni"]
Lengte = Literal["kort", "medium", "lang"]
AfbeeldingType = Literal["geen", "stock", "ai"]
TemplateType = Literal["klassiek", "praktisch", "onderzoek", "toets", "custom"]


class TemplateSection(BaseModel):
    """One section of a chapter template."""

    titel: str
    beschrijving: str = ""
    verplicht: bool = True

    model_config = ConfigDict(frozen=True)


class ChapterForm(BaseModel):
    """Everything the docent filled in for a single chapter."""

    onderwerp: str = Field(..., max_length=500)
    niveau: Niveau = "havo"
    leerjaar: int = Field(1, ge=1, le=6)
    leerdoelen: str = Field("", max_length=4000)
    lengte: Lengte = "medium"
    # 0 / missing means "use the lengte preset"
    woorden_aantal: int | None = Field(None, alias="woordenAantal")
    met_afbeeldingen: bool = Field(True, alias="metAfbeeldingen")
    afbeelding_type: AfbeeldingType = Field("stock", alias="afbeeldingType")
    met_bronnen: bool = Field(False, alias="metBronnen")
    context: str = Field("", max_length=500)
    template: TemplateType = "klassiek"
    custom_secties: list[TemplateSection] | None = Field(None, alias="customSecties")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("onderwerp")
    @classmethod
    def _require_onderwerp(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Onderwerp is verplicht")
        return v


class PriorChapter(BaseModel):
    """Summary of a chapter already written for the same handboek."""

    titel: str
    onderwerp: str
    samenvatting: str | None = None


class GenerateRequest(BaseModel):
    form: ChapterForm = Field(..., alias="formData")
    eerdere_hoofdstukken: list[PriorChapter] = Field(
        default_factory=list, alias="eerdereHoofdstukken"
    )

    model_config = ConfigDict(populate_by_name=True)


class RewriteRequest(BaseModel):
    """Rewrite an existing section following a free-form instruction."""

    sectie: str = Field(..., min_length=1, max_length=20_000)
    instructie: str = Field(..., min_length=1, max_length=1000)
    context: str | None = Field(None, max_length=1000)

    @field_validator("sectie", "instructie")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Sectie en instructie zijn verplicht")
        return v


class StreamMessage(BaseModel):
    """Envelope of every event the relay sends to the browser."""

    type: Literal["prompt", "content", "error", "done"]
    content: str | None = None
    error: str | None = None

    model_config = ConfigDict(extra="forbid")

    def to_sse(self) -> str:
        """Serialize to one SSE event (`data: {...}` plus blank line)."""
        payload = json.dumps(
            self.model_dump(exclude_none=True), ensure_ascii=False
        )
        return f"data: {payload}\n\n"
