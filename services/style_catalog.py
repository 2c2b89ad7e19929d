"""Preset landscape styles and the user's style choice."""
from dataclasses import dataclass, field
from typing import Optional

from core.errors import InputFault


@dataclass(frozen=True)
class DesignStyle:
    id: str
    name: str
    description: str
    features: tuple[str, ...] = field(default_factory=tuple)
    example: str = ""


PRESET_STYLES: tuple[DesignStyle, ...] = (
    DesignStyle(
        id="modern-minimalist",
        name="Modern Minimalist",
        description="Clean lines, curated plants, and a focus on space and function.",
        features=("Sleek geometric shapes", "Low-maintenance plants", "Modern materials", "Functional design"),
        example="White gravel, ornamental grasses, geometric beds, minimalist outdoor furniture",
    ),
    DesignStyle(
        id="cottage-garden",
        name="English Cottage Garden",
        description="Lush blooms, natural curves, and a romantic vibe.",
        features=("Layered flower beds", "Winding paths", "Vintage accents", "Seasonal color"),
        example="Rose arbors, stone walkways, mixed borders, vintage planters",
    ),
    DesignStyle(
        id="zen-garden",
        name="Zen Japanese Garden",
        description="Balance, tranquility, and the perfect blend of water and stone.",
        features=("Water features", "Natural stone", "Mossy plants", "Meditation space"),
        example="Bamboo accents, dry rock gardens, stone lanterns, peaceful streams",
    ),
    DesignStyle(
        id="entertainment",
        name="Entertainment Oasis",
        description="A backyard built for gatherings and family fun.",
        features=("Outdoor dining", "Lounge seating", "BBQ area", "Lighting system"),
        example="Patio sets, fire pit, outdoor kitchen, ambient lighting",
    ),
    DesignStyle(
        id="mediterranean",
        name="Mediterranean Escape",
        description="Warm tones, fragrant herbs, and a taste of Southern Europe.",
        features=("Warm materials", "Herb gardens", "Terracotta accents", "Shade structures"),
        example="Olive trees, lavender, terracotta pots, vine-covered pergola",
    ),
    DesignStyle(
        id="tropical",
        name="Tropical Paradise",
        description="Bold foliage and vacation vibes for a lush, exotic retreat.",
        features=("Large-leaf plants", "Tropical colors", "Water features", "Resort atmosphere"),
        example="Banana leaves, palm trees, bamboo decor, tropical flowers",
    ),
)

STYLES_BY_ID = {style.id: style for style in PRESET_STYLES}
CUSTOM_STYLE_ID = "custom"


def get_style(style_id: str) -> DesignStyle:
    try:
        return STYLES_BY_ID[style_id]
    except KeyError:
        available = ", ".join(STYLES_BY_ID)
        raise InputFault(f"Unknown style: '{style_id}'", details=f"Available styles: {available}") from None


@dataclass(frozen=True)
class StyleChoice:
    """Exactly one of preset_id or custom_description is set."""

    preset_id: Optional[str] = None
    custom_description: Optional[str] = None

    def __post_init__(self):
        has_preset = bool(self.preset_id)
        has_custom = bool(self.custom_description and self.custom_description.strip())
        if has_preset == has_custom:
            raise InputFault("Choose either a preset style or a custom description")
        if has_preset:
            get_style(self.preset_id)

    @classmethod
    def preset(cls, style_id: str) -> "StyleChoice":
        return cls(preset_id=style_id)

    @classmethod
    def custom(cls, description: str) -> "StyleChoice":
        return cls(custom_description=description)

    @property
    def is_custom(self) -> bool:
        return self.preset_id is None

    @property
    def style_key(self) -> str:
        """Value sent as `style` on the wire."""
        return CUSTOM_STYLE_ID if self.is_custom else self.preset_id

    @property
    def label(self) -> str:
        if self.is_custom:
            return "Custom design"
        return get_style(self.preset_id).name
