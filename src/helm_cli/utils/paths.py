"""Layout of the Helm home directory (``$HELM_HOME``)."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class HelmHome:
    """Well-known locations below the Helm home directory."""

    root: Path

    @classmethod
    def of(cls, home: str | Path) -> HelmHome:
        return cls(Path(home))

    @property
    def repository(self) -> Path:
        return self.root / "repository"

    @property
    def repository_file(self) -> Path:
        return self.repository / "repositories.yaml"

    @property
    def cache(self) -> Path:
        return self.repository / "cache"

    @property
    def local_repository(self) -> Path:
        return self.repository / "local"

    @property
    def plugins(self) -> Path:
        return self.root / "plugins"

    @property
    def starters(self) -> Path:
        return self.root / "starters"

    @property
    def archive(self) -> Path:
        return self.root / "cache" / "archive"

    def directories(self) -> tuple[Path, ...]:
        """Directories ``helm init`` creates, parents first."""
        return (
            self.root,
            self.repository,
            self.cache,
            self.local_repository,
            self.plugins,
            self.starters,
            self.archive,
        )

    def __str__(self) -> str:
        return str(self.root)
