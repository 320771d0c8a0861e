"""pytestarch view of src/beadrelay."""

from pathlib import Path

import pytest
from pytestarch import (
    EvaluableArchitecture,
    LayeredArchitecture,
    get_evaluable_architecture,
)

SRC_DIR = Path(__file__).resolve().parent.parent.parent / "src"


@pytest.fixture(scope="session")
def evaluable() -> EvaluableArchitecture:
    return get_evaluable_architecture(str(SRC_DIR), str(SRC_DIR / "beadrelay"))


@pytest.fixture(scope="session")
def layers() -> LayeredArchitecture:
    """pytestarch prefixes module names with the root directory, hence 'src.'."""
    return (
        LayeredArchitecture()
        .layer("domain")
        .containing_modules(["src.beadrelay.domain"])
        .layer("application")
        .containing_modules(["src.beadrelay.application"])
        .layer("infrastructure")
        .containing_modules(["src.beadrelay.infrastructure"])
    )
