import sys

import pytest
from structlog._config import BoundLoggerLazyProxy

from admissions.app.core.logging import setup_logging
from admissions.app.core.settings import get_settings


@pytest.fixture(autouse=True)
def _restore_logging_stream():
    """Re-point structlog at the live stdout after each test.

    setup_logging() binds the current sys.stdout; a test that calls it under
    capsys would otherwise leave every later logger writing to a closed stream.
    """
    yield
    setup_logging(get_settings())
    for name, module in list(sys.modules.items()):
        if not name.startswith("admissions") or module is None:
            continue
        for value in vars(module).values():
            if isinstance(value, BoundLoggerLazyProxy):
                value.__dict__.pop("bind", None)
