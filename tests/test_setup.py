"""Test that the project setup is working correctly."""

import wavewarz_analytics


def test_version() -> None:
    """Test that version is defined."""
    assert wavewarz_analytics.__version__ == "0.1.0"


def test_import_modules() -> None:
    """Test that all submodules can be imported."""
    from wavewarz_analytics import battles
    from wavewarz_analytics import chain
    from wavewarz_analytics import scan
    from wavewarz_analytics import storage
    from wavewarz_analytics import traders

    # Just verify imports work
    assert battles is not None
    assert chain is not None
    assert scan is not None
    assert storage is not None
    assert traders is not None
