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
"""In-memory key-value client for development and tests."""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Mapping, Sequence
from typing import Any

from dynastore.kernel.exceptions import BackendException
from dynastore.session.ports.outbound import KEY_ATTRIBUTE, LessThan


class InMemoryKeyValueClient:
    """Key-value client keeping tables in process memory.

    Tables are created on first write. Items are deep-copied on the way in
    and out so callers never share state with the store. Suitable for
    development, testing, and single-process applications.
    """

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    async def get_item(self, table: str, key: str) -> dict[str, Any] | None:
        async with self._lock:
            item = self._tables.get(table, {}).get(key)
            return copy.deepcopy(item) if item is not None else None

    async def put_item(self, table: str, item: Mapping[str, Any]) -> None:
        key = item.get(KEY_ATTRIBUTE)
        if not isinstance(key, str):
            raise BackendException(
                f"Item for table '{table}' has no '{KEY_ATTRIBUTE}' key",
                code="ValidationException",
                context={"table": table},
            )
        async with self._lock:
            self._tables.setdefault(table, {})[key] = copy.deepcopy(dict(item))

    async def update_item(self, table: str, key: str, attributes: Mapping[str, Any]) -> None:
        async with self._lock:
            # Same as DynamoDB: updating a missing key creates the item.
            item = self._tables.setdefault(table, {}).setdefault(key, {KEY_ATTRIBUTE: key})
            item.update(copy.deepcopy(dict(attributes)))

    async def delete_item(self, table: str, key: str) -> None:
        async with self._lock:
            self._tables.get(table, {}).pop(key, None)

    async def scan(
        self, table: str, condition: LessThan, fields: Sequence[str]
    ) -> list[dict[str, Any]]:
        async with self._lock:
            return [
                {name: copy.deepcopy(item[name]) for name in fields if name in item}
                for item in self._tables.get(table, {}).values()
                if condition.matches(item)
            ]

    def __len__(self) -> int:
        return sum(len(items) for items in self._tables.values())
