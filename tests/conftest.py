import json
import os
from datetime import date

import pytest

# keep the web module's import-time store in memory
os.environ.setdefault("CHIT_DATABASE_URL", "sqlite://")

from chit_calc.schedule import build_group_schedule  # noqa: E402

TODAY = date(2024, 4, 15)


@pytest.fixture
def group():
    """Month 4 of a 20-month group as of ``TODAY``."""
    return {
        "_id": "g1",
        "name": "Sunrise 1L",
        "monthlyInstallment": 5000,
        "totalMonths": 20,
        "startDate": "2024-01-01",
        "penaltyPercent": 2,
    }


@pytest.fixture
def schedule(group):
    return build_group_schedule(group)


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def write_json(tmp_path):
    def _write(name, data):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)

    return _write
