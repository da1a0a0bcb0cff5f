"""
Driver configuration

Plain configuration dictionaries (as passed to the session) are converted into
a DriverConfig so that typos in option names fail fast.
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class DriverConfig:
    """Options shared by the translator and the session"""

    # Log every translated query at info level
    log_queries: bool = False

    # Translation time above which a warning is logged
    translation_sla_ms: float = 5.0

    # Document primary key field
    id_field: str = "_id"

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]]) -> "DriverConfig":
        """
        Build a DriverConfig from a configuration dictionary.

        Raises:
            ValueError: If the dictionary contains unknown options
        """
        if not config:
            return cls()

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config) - known)
        if unknown:
            raise ValueError(f"Unknown driver config option(s): {', '.join(unknown)}")

        return cls(**config)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
