"""Image metadata record model."""

from datetime import datetime
from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from tagstore.utils.constants import MAX_IMAGE_ID


class Rating(IntEnum):
    """Content rating understood by the board's bulk import format."""

    UNKNOWN = 0
    SAFE = 1
    QUESTIONABLE = 2
    EXPLICIT = 3

    @property
    def letter(self) -> str:
        """One-letter code used by the bulk format, empty for UNKNOWN."""
        return _RATING_LETTERS[self]

    @classmethod
    def from_letter(cls, letter: str) -> "Rating":
        """Parse a bulk-format rating letter; anything unrecognised is UNKNOWN."""
        normalized = letter.strip().lower()
        for rating, code in _RATING_LETTERS.items():
            if code and code == normalized:
                return rating
        return cls.UNKNOWN


_RATING_LETTERS: dict[Rating, str] = {
    Rating.UNKNOWN: "",
    Rating.SAFE: "s",
    Rating.QUESTIONABLE: "q",
    Rating.EXPLICIT: "e",
}


class Image(BaseModel):
    """Tagging metadata for one picture, owned by exactly one group."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    id: StrictInt = Field(
        0,
        ge=0,
        le=MAX_IMAGE_ID,
        description="Per-group sequence number assigned by the store; 0 until added",
    )
    name: StrictStr = Field("", description="File name of the image")
    tags: StrictStr = Field("", description="Space-joined tag list")
    source: StrictStr = Field("", description="Source URL or note")
    rating: Rating = Field(Rating.UNKNOWN, description="Content rating")

    added: datetime | None = Field(None, description="Set once by the store when the image is added")
    updated: datetime | None = Field(None, description="Set by the store on every update")

    size: StrictInt = Field(0, ge=0, description="File size in bytes")
    width: StrictInt = Field(0, ge=0, description="Width in pixels")
    height: StrictInt = Field(0, ge=0, description="Height in pixels")
    hash: StrictStr = Field("", description="Content hash, key of the image data blob")
    ext: StrictStr = Field("", description="File extension without the dot")

    def tag_list(self) -> list[str]:
        """Return the individual tags, dropping repeated whitespace."""
        return self.tags.split()
