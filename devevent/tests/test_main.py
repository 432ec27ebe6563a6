"""Tests for the command line entry point."""

import sys
import pytest
from unittest.mock import AsyncMock, patch

from devevent import __main__ as cli
from devevent.database import connections
from devevent.database.connections import set_connection_cache
from devevent.exceptions import DatabaseConnectionError


@pytest.fixture(autouse=True)
def reset_global_cache():
    set_connection_cache(None)
    yield
    set_connection_cache(None)


@pytest.mark.asyncio
async def test_init_db_creates_schema_and_cleans_up(devevent_config):
    with patch.object(cli, "create_schema", new=AsyncMock()) as create_schema:
        await cli.init_db(devevent_config)

    create_schema.assert_awaited_once()
    assert connections._connection_cache is None


def test_init_db_failure_exits(devevent_config):
    failing = AsyncMock(side_effect=DatabaseConnectionError("Unable to connect to database: refused"))
    with patch.object(sys, "argv", ["devevent", "init-db"]), \
            patch.object(cli, "DevEventConfig", return_value=devevent_config), \
            patch.object(cli, "create_schema", new=failing):
        with pytest.raises(SystemExit) as exc_info:
            cli.main()

    assert exc_info.value.code == 1


def test_serve_requires_database_url(devevent_config):
    devevent_config.database_url = ""
    with patch.object(sys, "argv", ["devevent", "serve"]), \
            patch.object(cli, "DevEventConfig", return_value=devevent_config), \
            patch.object(cli.uvicorn, "run") as run:
        with pytest.raises(SystemExit):
            cli.main()

    run.assert_not_called()


def test_serve_runs_uvicorn(devevent_config):
    with patch.object(sys, "argv", ["devevent", "serve", "--reload"]), \
            patch.object(cli, "DevEventConfig", return_value=devevent_config), \
            patch.object(cli.uvicorn, "run") as run:
        cli.main()

    args, kwargs = run.call_args
    assert args[0] == "devevent.http_server:app"
    assert kwargs["port"] == devevent_config.http_port
    assert kwargs["reload"] is True
