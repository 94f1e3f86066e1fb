"""Pydantic models for the target matrix.

A matrix is an ordered list of target descriptors. Each descriptor names a
target triple, the execution host class able to build it, and whether
dependency state may be cached for it. Input files may use the ``target``
and ``os`` keys of a CI matrix ``include:`` block as aliases.
"""

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cross_release.toolchain.host import os_family_for_label
from cross_release.types import OSFamily

TRIPLE_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]+$")


class TargetSchema(BaseModel):
    """Immutable descriptor of one build target.

    Attributes:
        triple: Target triple (e.g. 'aarch64-unknown-linux-musl').
        host_os: Label of the host class that can build the triple.
        use_cache: Whether dependency state may be reused across runs.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    triple: Annotated[
        str,
        Field(
            alias="target",
            description="Target triple",
            min_length=1,
            max_length=100,
        ),
    ]
    host_os: str = Field(
        default="ubuntu-latest",
        alias="os",
        description="Execution host label (ubuntu-*, macos-*, windows-*)",
    )
    use_cache: bool = Field(default=True, description="Reuse cached dependency state")

    @field_validator("triple")
    @classmethod
    def validate_triple(cls, v: str) -> str:
        """Validate triple matches safe pattern."""
        if not TRIPLE_PATTERN.match(v):
            raise ValueError(
                f"triple must match pattern {TRIPLE_PATTERN.pattern}, got '{v}'"
            )
        return v

    @field_validator("host_os")
    @classmethod
    def validate_host_os(cls, v: str) -> str:
        """Validate host_os is a recognised host label."""
        os_family_for_label(v)
        return v

    @property
    def os_family(self) -> OSFamily:
        """OS family of the host class required for this target."""
        return os_family_for_label(self.host_os)


class MatrixSchema(BaseModel):
    """An ordered, non-empty list of targets with unique triples."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    targets: list[TargetSchema] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_unique_triples(self) -> "MatrixSchema":
        """Reject a matrix naming the same triple twice."""
        duplicates = find_duplicate_triples(self.targets)
        if duplicates:
            raise ValueError(f"duplicate target triples: {', '.join(duplicates)}")
        return self

    @property
    def triples(self) -> list[str]:
        return [t.triple for t in self.targets]


def find_duplicate_triples(targets: list[TargetSchema]) -> list[str]:
    """Return triples appearing more than once, in first-seen order."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for target in targets:
        if target.triple in seen and target.triple not in duplicates:
            duplicates.append(target.triple)
        seen.add(target.triple)
    return duplicates


__all__ = [
    "TRIPLE_PATTERN",
    "MatrixSchema",
    "TargetSchema",
    "find_duplicate_triples",
]
