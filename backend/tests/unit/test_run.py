from unittest.mock import patch

import run
from bookati.core.config import settings


def test_run_serves_the_app_on_configured_address():
    with patch("run.uvicorn.run") as uvicorn_run, patch("run.os.chdir"):
        run.main()

    uvicorn_run.assert_called_once()
    assert uvicorn_run.call_args.args == ("bookati.main:app",)
    assert uvicorn_run.call_args.kwargs["host"] == settings.api_host
    assert uvicorn_run.call_args.kwargs["port"] == settings.api_port
    assert uvicorn_run.call_args.kwargs["log_level"] == settings.log_level.lower()
