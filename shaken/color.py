"""RGB color values as used in Twitch chat tags (``#rrggbb``)."""

from pydantic import BaseModel, ConfigDict, Field


class RGB(BaseModel):
    """An immutable 24-bit color."""

    model_config = ConfigDict(frozen=True)

    r: int = Field(default=255, ge=0, le=255)
    g: int = Field(default=255, ge=0, le=255)
    b: int = Field(default=255, ge=0, le=255)

    @classmethod
    def from_hex(cls, value: str) -> "RGB":
        """Parse ``#rrggbb`` or ``rrggbb``.

        Raises:
            ValueError: The string is not a six digit hex color.
        """
        s = value.strip().lstrip("#")
        if len(s) != 6:
            raise ValueError(f"invalid color: {value!r}")
        try:
            r, g, b = (int(s[i:i + 2], 16) for i in (0, 2, 4))
        except ValueError:
            raise ValueError(f"invalid color: {value!r}") from None
        return cls(r=r, g=g, b=b)

    def to_hex(self) -> str:
        return f"#{self.r:02x}{self.g:02x}{self.b:02x}"

    def __str__(self) -> str:
        return self.to_hex()
