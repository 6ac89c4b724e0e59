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
"""Session store and key-value backend protocols."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

KEY_ATTRIBUTE = "id"
"""Primary key attribute of every session table."""


@dataclass(frozen=True)
class LessThan:
    """Scan condition: numeric ``attribute`` strictly below ``value``."""

    attribute: str
    value: int

    def matches(self, item: Mapping[str, Any]) -> bool:
        current = item.get(self.attribute)
        if isinstance(current, bool) or not isinstance(current, (int, float)):
            return False
        return current < self.value


@runtime_checkable
class SessionStore(Protocol):
    """Session persistence interface consumed by session middleware.

    ``get`` returns ``None`` for missing and expired sessions. ``shutdown``
    releases the store's background resources and is idempotent.
    """

    async def get(self, sid: str) -> dict[str, Any] | None: ...

    async def set(self, sid: str, session: dict[str, Any]) -> None: ...

    async def destroy(self, sid: str) -> None: ...

    async def shutdown(self) -> None: ...


@runtime_checkable
class KeyValueClient(Protocol):
    """Capabilities a storage backend must offer to a session store.

    Items are flat mappings keyed by the table's ``id`` attribute. Every
    failure is raised as :class:`~dynastore.kernel.exceptions.BackendException`.
    """

    async def get_item(self, table: str, key: str) -> dict[str, Any] | None:
        """Return the item stored under *key*, or ``None`` if there is none."""
        ...

    async def put_item(self, table: str, item: Mapping[str, Any]) -> None:
        """Write *item*, replacing any item with the same key."""
        ...

    async def update_item(self, table: str, key: str, attributes: Mapping[str, Any]) -> None:
        """Set *attributes* on the item under *key*, leaving the rest untouched."""
        ...

    async def delete_item(self, table: str, key: str) -> None:
        """Delete the item under *key*. Deleting a missing item succeeds."""
        ...

    async def scan(
        self, table: str, condition: LessThan, fields: Sequence[str]
    ) -> list[dict[str, Any]]:
        """Return every item matching *condition*, projected to *fields*."""
        ...
