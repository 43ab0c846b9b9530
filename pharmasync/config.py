from dataclasses import dataclass

from .identifiers import validate_identifier


@dataclass
class QueueConfig:
    id_column: str = "id"

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        validate_identifier(self.id_column, "id_column")


@dataclass
class RemoteConfig:
    id_column: str = "id"

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        validate_identifier(self.id_column, "id_column")
