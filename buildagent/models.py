from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


StepStatus = Literal["pending", "running", "success", "failed", "fixing"]


class BuildStep(BaseModel):
    name: str
    status: StepStatus = "pending"


class ProjectFile(BaseModel):
    name: str
    language: str
    content: str


class FileUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str


class SessionState(BaseModel):
    steps: list[BuildStep]
    files: list[ProjectFile] = Field(default_factory=list)
    logs: list[str] = Field(default_factory=list)
    busy: bool = False
