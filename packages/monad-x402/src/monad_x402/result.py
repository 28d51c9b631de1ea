# Copyright 2025 t54 labs
# SPDX-License-Identifier: Apache-2.0
"""Outcome of a facilitator call.

``Ok`` carries the parsed response, ``Invalid`` an expected rejection of the
payment (bad payment, failed settlement, or a replay flagged by
``conflict``), and ``Fault`` anything that went wrong on the way
(transport error, unparseable body).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    meta: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Invalid:
    reason: str
    status_code: int = 402
    conflict: bool = False


@dataclass(frozen=True)
class Fault:
    error: str


Result = Union[Ok[T], Invalid, Fault]
