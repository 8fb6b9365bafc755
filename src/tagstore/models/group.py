"""Group record model."""

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


class Group(BaseModel):
    """A named collection of images.

    `size` and `images` are bookkeeping maintained by the store in the same
    transaction as every membership change.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    name: StrictStr = Field(..., description="Unique, immutable group name")
    size: StrictInt = Field(0, description="Sum of the contained images' sizes in bytes")
    images: list[StrictInt] = Field(
        default_factory=list,
        description="IDs of the contained images in ascending order",
    )

    @property
    def image_count(self) -> int:
        return len(self.images)

    @property
    def is_empty(self) -> bool:
        return not self.images
