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
"""dynastore session — expiring session storage over key-value tables.

Import concrete client types from the adapter package::

    from dynastore.session.adapters.dynamodb import DynamoDBClient
    from dynastore.session.adapters.memory import InMemoryKeyValueClient
"""

from dynastore.session.factory import create_session_store
from dynastore.session.ports.outbound import KeyValueClient, LessThan, SessionStore
from dynastore.session.reaper import SessionReaper
from dynastore.session.store import DynamoDBSessionStore

__all__ = [
    "DynamoDBSessionStore",
    "KeyValueClient",
    "LessThan",
    "SessionReaper",
    "SessionStore",
    "create_session_store",
]
