from pathlib import Path

import pytest

PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


@pytest.mark.regression
def test_package_metadata_does_not_ship_design_documents():
    text = PYPROJECT.read_text(encoding="utf-8")

    assert "SPEC_FULL.md" not in text
    assert "DESIGN.md" not in text
    assert 'name = "voter-analytics"' in text
