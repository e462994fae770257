import pytest
from PIL import Image

from recipe_capture.infrastructure.persistence.settings_store import InMemorySettingsStore


@pytest.fixture
def png_image(tmp_path) -> str:
    """Path to a small, real PNG file."""
    path = tmp_path / "recipe.png"
    Image.new("RGB", (32, 32), "white").save(path, format="PNG")
    return str(path)


@pytest.fixture
def settings_store() -> InMemorySettingsStore:
    return InMemorySettingsStore("hybrid")
