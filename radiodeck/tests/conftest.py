import os
import sys
import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()


@pytest.fixture(autouse=True)
def _clear_radiodeck_env():
    """Ensure RADIODECK_* settings do not leak across tests.
    A developer shell or a loaded .env may set these variables; clear them before
    each test and restore afterwards so tests setting them stay deterministic.
    """
    keys = [k for k in os.environ if k.startswith('RADIODECK_')]
    backup = {k: os.environ.get(k) for k in keys}
    for k in keys:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k in [k for k in os.environ if k.startswith('RADIODECK_')]:
            os.environ.pop(k, None)
        for k, v in backup.items():
            if v is not None:
                os.environ[k] = v
