from abc import abstractmethod
from typing import Any, Dict, Optional


class SnapshotSource:
    """Gives access to attribute values as they were when the record was loaded or last saved."""

    @abstractmethod
    def get_old_attribute(self, name: str) -> Optional[Any]:
        raise NotImplementedError


class ErrorSink:
    """Collects validation errors for a record."""

    @abstractmethod
    def report(self, attribute: str, message: str, context: Dict[str, Any]):
        raise NotImplementedError
