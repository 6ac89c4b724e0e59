# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Lifecycle protocol for components that own background resources.

A store owns a periodic reaper task. ``start()`` brings it up and
``stop()`` releases it; both must be safe to call more than once.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Lifecycle(Protocol):
    """Start/stop contract for resource-owning components."""

    async def start(self) -> None:
        """Acquire background resources (timers, tasks)."""
        ...

    async def stop(self) -> None:
        """Release background resources. Idempotent."""
        ...
