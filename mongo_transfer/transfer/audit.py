"""
Audit files listing identifiers, written for the operator
"""
import logging
import uuid
from pathlib import Path
from typing import Iterable, Any, Union

from bson import json_util

logger = logging.getLogger(__name__)

AUDIT_PREFIX = "mirror."
SNAPSHOT_SUFFIX = ".json"
RESIDUAL_SUFFIX = ".out.json"


class AuditWriter:
    """Serializes identifier sets to uniquely named Extended JSON files"""

    def __init__(self, directory: Union[str, Path] = "."):
        self.directory = Path(directory)
        self.written = []

    def new_path(self, suffix: str = SNAPSHOT_SUFFIX) -> Path:
        return (self.directory / f"{AUDIT_PREFIX}{uuid.uuid4().hex}{suffix}").resolve()

    def write(self, identifiers: Iterable[Any], suffix: str = SNAPSHOT_SUFFIX) -> Path:
        """Write identifiers as a JSON array and return the absolute path"""
        path = self.new_path(suffix)
        payload = json_util.dumps(list(identifiers))

        # 'x' refuses to replace an existing audit file
        with open(path, 'x', encoding='utf-8') as f:
            f.write(payload)

        self.written.append(path)
        logger.debug(f"Audit file written: {path}")
        return path
