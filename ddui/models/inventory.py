"""Inventory data models: hosts, the stacks deployed on them, and their containers."""

from typing import List, Literal
from pydantic import BaseModel, ConfigDict, Field


StackType = Literal["compose", "script"]


class Container(BaseModel):
    """Runtime container attached to a stack (filled in by status polling)."""

    model_config = ConfigDict(frozen=True)

    name: str
    image: str
    state: str


class Stack(BaseModel):
    """A deployable unit rooted at one directory under a host."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: StackType
    path: str = Field(description="Absolute path of the stack directory")
    sops: bool = Field(description="Stack directory holds sops-encrypted secret files")
    containers: List[Container] = Field(default_factory=list)


class Host(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str
    groups: List[str] = Field(default_factory=list)
    stacks: List[Stack] = Field(default_factory=list)


class Inventory(BaseModel):
    model_config = ConfigDict(frozen=True)

    hosts: List[Host] = Field(default_factory=list)

    @property
    def stack_count(self) -> int:
        return sum(len(h.stacks) for h in self.hosts)
