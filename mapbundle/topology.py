from __future__ import annotations

import json
from typing import Optional

from common.logging_setup import get_logger
from common.types import TopologyOutcome, TopologyStatus


log = get_logger("mapbundle.topology")


def extract_topology(content: Optional[bytes]) -> TopologyOutcome:
    """
    Parse a topology member as JSON. The document schema is not checked.
    Missing content is ABSENT; undecodable or malformed content is PARSE_ERROR.
    """
    if content is None:
        return TopologyOutcome.absent()
    try:
        value = json.loads(content.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        log.error("failed to parse topology file", extra={"extra": {"error": str(e), "bytes": len(content)}})
        return TopologyOutcome(TopologyStatus.PARSE_ERROR, None, str(e))
    return TopologyOutcome(TopologyStatus.OK, value)
