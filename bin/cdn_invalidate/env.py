from __future__ import annotations

from dataclasses import dataclass

from cdn_invalidate.amazon import AwsTransport
from cdn_invalidate.settings import InvalidationTarget, ProjectConfig


@dataclass(frozen=True)
class Config:
    project: ProjectConfig
    transport: AwsTransport
    skip: bool = False

    @property
    def stage(self) -> str:
        return self.project.provider.stage

    @property
    def stack_name(self) -> str:
        return self.project.stack_name(self.stage)

    @property
    def targets(self) -> tuple[InvalidationTarget, ...]:
        return self.project.targets
