import json
import os
import sys

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(project_root)

from tests.helpers import SIDECAR, TOPOLOGY, make_pgm, make_zip


@pytest.fixture
def bundle_bytes():
    """3x2 office map with sidecar and topology."""
    pgm = make_pgm(3, 2, [254, 0, 205, 10, 200, 150])
    return make_zip({
        "office.pgm": pgm,
        "office.yaml": SIDECAR,
        "office.topology": json.dumps(TOPOLOGY),
    })
