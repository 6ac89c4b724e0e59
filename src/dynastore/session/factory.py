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
"""Build a session store from configuration."""

from __future__ import annotations

import structlog

from dynastore.config.properties.session import SessionStoreProperties
from dynastore.core.config import Config
from dynastore.session.adapters.dynamodb import DynamoDBClient
from dynastore.session.adapters.memory import InMemoryKeyValueClient
from dynastore.session.ports.outbound import KeyValueClient
from dynastore.session.store import DynamoDBSessionStore

logger = structlog.get_logger(__name__)


def create_client(properties: SessionStoreProperties) -> KeyValueClient:
    """Build the key-value client selected by ``dynastore.session.backend``."""
    if properties.backend == "memory":
        return InMemoryKeyValueClient()
    return DynamoDBClient(
        region_name=properties.region_name,
        endpoint_url=properties.endpoint_url,
        access_key_id=properties.access_key_id,
        secret_access_key=properties.secret_access_key,
    )


def create_session_store(config: Config) -> DynamoDBSessionStore:
    """Create a :class:`DynamoDBSessionStore` from ``dynastore.session.*``.

    The returned store owns a reaper; call ``shutdown()`` when done.
    """
    properties = config.bind(SessionStoreProperties)
    store = DynamoDBSessionStore(
        create_client(properties),
        prefix=properties.prefix,
        table=properties.table,
        reap_interval=properties.reap_interval,
        strict_lookup=properties.strict_lookup,
    )
    logger.info(
        "session_store_configured",
        backend=properties.backend,
        table=properties.table,
        prefix=properties.prefix,
        reap_interval_ms=properties.reap_interval,
    )
    return store
