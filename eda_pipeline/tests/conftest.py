import sys
from pathlib import Path as _P

import pytest

# Ensure project root (containing the 'eda_pipeline' package directory) is on sys.path
_project_root = _P(__file__).resolve().parents[2]
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from eda_pipeline import Table  # noqa: E402


@pytest.fixture
def ufo_sightings():
    # shape missing in rows 1 and 3, day_part missing in row 3 only
    return Table.from_columns(
        {
            "city": ["austin", "denver", "austin", "boise", "denver"],
            "shape": ["disk", None, "light", None, "disk"],
            "day_part": ["night", "dusk", "night", None, "night"],
        }
    )


@pytest.fixture
def flights():
    return Table.from_columns(
        {
            "carrier": ["UA", "DL", "UA", "UA", "DL", "UA"],
            "origin": ["EWR", "JFK", "EWR", "LGA", "JFK", "EWR"],
            "dep_delay": [10, 5, 30, 30, None, 20],
        },
        types={"carrier": "categorical", "dep_delay": "integer"},
    )
