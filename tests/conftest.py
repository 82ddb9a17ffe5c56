import os

import pytest


@pytest.fixture(autouse=True)
def isolate_feature_env(monkeypatch):
    """Remove any FEATURE_* variables inherited from the outer environment.

    Several tests read flags from ``os.environ``; stray variables from the
    developer's shell or CI would change their outcome.
    """
    for name in list(os.environ):
        if name.startswith("FEATURE_"):
            monkeypatch.delenv(name, raising=False)
    yield
