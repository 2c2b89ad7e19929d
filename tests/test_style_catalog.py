"""
Unit tests for the style catalog
"""

import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from core.errors import InputFault
from services.style_catalog import CUSTOM_STYLE_ID, PRESET_STYLES, StyleChoice, get_style


class TestCatalog:

    def test_six_unique_presets(self):
        ids = [style.id for style in PRESET_STYLES]

        assert len(ids) == 6
        assert len(set(ids)) == 6
        assert CUSTOM_STYLE_ID not in ids

    def test_get_style(self):
        assert get_style("tropical").name == "Tropical Paradise"

    def test_unknown_style(self):
        with pytest.raises(InputFault) as exc_info:
            get_style("brutalist")

        assert "zen-garden" in exc_info.value.details


class TestStyleChoice:
    """Exactly one of preset or custom description"""

    def test_preset(self):
        choice = StyleChoice.preset("zen-garden")

        assert not choice.is_custom
        assert choice.style_key == "zen-garden"
        assert choice.label == "Zen Japanese Garden"

    def test_custom(self):
        choice = StyleChoice.custom("Raised vegetable beds and a chicken coop")

        assert choice.is_custom
        assert choice.style_key == CUSTOM_STYLE_ID
        assert choice.label == "Custom design"

    @pytest.mark.parametrize("kwargs", [
        {},
        {"custom_description": "   "},
        {"preset_id": "zen-garden", "custom_description": "Both at once"},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InputFault):
            StyleChoice(**kwargs)

    def test_unknown_preset(self):
        with pytest.raises(InputFault):
            StyleChoice.preset("brutalist")
