import pytest

from recipe_capture.domain.errors import ErrorKind
from recipe_capture.infrastructure.ocr import text_processor
from tests.mocks.sample_data import RECIPE_TEXT


def test_process_text_rejects_empty_input():
    result = text_processor.process_text("  \n ")

    assert result.kind == ErrorKind.NO_TEXT_EXTRACTED


def test_known_misreads_and_digits_between_letters_are_repaired():
    assert text_processor.fix_common_ocr_errors("2 cups f10ur and c0coa") == "2 cups flour and cocoa"


def test_quantities_survive_ocr_repairs():
    assert text_processor.fix_common_ocr_errors("1/2 cup, 2.5 oz, 350") == "1/2 cup, 2.5 oz, 350"


def test_improve_structure_normalises_headers_and_markers():
    text = "ingredients\n• 2cups milk\n* 1 egg\ndirections\n1) Stir"

    assert text_processor.improve_structure(text) == (
        "INGREDIENTS:\n- 2 cups milk\n- 1 egg\nDIRECTIONS:\n1. Stir"
    )


def test_remove_noise_drops_stray_characters_but_keeps_numbers():
    assert text_processor.remove_noise("Mix well!!!\n~\n3\nWait.....") == "Mix well!\n3\nWait..."


def test_process_text_runs_every_pass():
    raw = "  Ingredients  \r\n\r\n\r\n\r\n•  2cups   f10ur\n|\n2)  Bake"

    result = text_processor.process_text(raw)

    assert result.value == "INGREDIENTS:\n\n- 2 cups flour\n2. Bake"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("", 0.0),
        ("hello world", 0.5),
        (RECIPE_TEXT, 1.0),
    ],
)
def test_estimate_structure_confidence(text, expected):
    assert text_processor.estimate_structure_confidence(text) == pytest.approx(expected)
