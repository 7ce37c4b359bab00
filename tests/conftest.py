"""Global test configuration for kbchunker tests."""

import pytest

SCENARIO_A = (
    "TABLE OF CONTENTS\n...\n\nFUND CREATION\n"
    "To create a fund, navigate to the dashboard and click New Fund. "
    "Step 1: enter details. Step 2: submit."
)


@pytest.fixture
def scenario_a_text():
    return SCENARIO_A


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point the workdir at a temp directory and reset the cached engine."""
    from kbchunker.core import config as config_module
    from kbchunker.db import engine as engine_module

    monkeypatch.delenv("KBCHUNKER_DB_URL", raising=False)
    monkeypatch.chdir(tmp_path)

    new_settings = config_module.Settings(KBCHUNKER_WORKDIR=str(tmp_path / "var"))
    monkeypatch.setattr(config_module, "SETTINGS", new_settings)

    engine_module.reset_engine()
    yield new_settings
    engine_module.reset_engine()


@pytest.fixture
def sqlite_engine():
    """Fresh in-memory SQLite database with all tables created."""
    from kbchunker.db.engine import Base, make_engine

    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture(autouse=True)
def reset_structlog():
    """Drop loggers cached against a CliRunner's (now closed) stderr."""
    import structlog

    from kbchunker.core import logging as logging_module

    yield
    structlog.reset_defaults()
    logging_module.log.__dict__.pop("bind", None)
