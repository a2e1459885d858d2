# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

import logging
import pytest
import dsk.log as ops_log
from dsk.client import Client
from dsk.config import reload_cfg
from utils import API_KEY, BASE_URL, RecordingTransport, build_fake_api, fake_transport

@pytest.fixture
def anyio_backend():
    return "asyncio"

@pytest.fixture(autouse=True)
def _reset_cfg_between_tests(monkeypatch, tmp_path):
    for k in ("DOCSEEK_API_KEY", "DOCSEEK_BASE_URL", "DOCSEEK_LOG__LEVEL", "DOCSEEK_LOG__OPS"):
        monkeypatch.delenv(k, raising=False)
    # point at a file that does not exist: defaults + env only
    reload_cfg(str(tmp_path / "docseek.yml"))
    ops_log.configure(None)
    yield
    ops_log.configure(None)
    log = logging.getLogger("dsk")
    for h in list(log.handlers):
        if not isinstance(h, logging.NullHandler):
            log.removeHandler(h)
    log.setLevel(logging.NOTSET)

@pytest.fixture()
def api():
    return build_fake_api()

@pytest.fixture()
def client(api):
    return Client(api_key=API_KEY, base_url=BASE_URL, transport=fake_transport(api))

@pytest.fixture()
def recorder():
    return RecordingTransport()

@pytest.fixture()
def rclient(recorder):
    return Client(api_key=API_KEY, base_url=BASE_URL, transport=recorder)
