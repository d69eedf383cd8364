import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from letterboxd_collections import IdCache


@pytest.fixture
def cache(tmp_path):
    id_cache = IdCache(tmp_path / "cache" / "ids.sqlite3")
    yield id_cache
    id_cache.close()


@pytest.fixture
def progress_log():
    reports = []

    def _report(percent: float) -> None:
        reports.append(percent)

    _report.reports = reports
    return _report
