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
"""Tests for the Lifecycle protocol."""

from __future__ import annotations

from dynastore.kernel.lifecycle import Lifecycle
from dynastore.session.adapters.memory import InMemoryKeyValueClient
from dynastore.session.store import DynamoDBSessionStore


class TestLifecycleProtocol:
    def test_session_store_is_lifecycle(self):
        assert issubclass(DynamoDBSessionStore, Lifecycle)

    def test_lifecycle_protocol_is_runtime_checkable(self):
        store = DynamoDBSessionStore(InMemoryKeyValueClient())
        assert isinstance(store, Lifecycle)

    def test_non_lifecycle_class_fails_check(self):
        class NotLifecycle:
            pass

        assert not isinstance(NotLifecycle(), Lifecycle)
