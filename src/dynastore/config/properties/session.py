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
"""Session store configuration properties."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from dynastore.core.config import config_properties


@config_properties(prefix="dynastore.session")
class SessionStoreProperties(BaseModel):
    """Configuration for the session store (dynastore.session.*)."""

    backend: Literal["dynamodb", "memory"] = "dynamodb"
    prefix: str = "sess:"
    table: str = Field(default="sessions", min_length=1)
    reap_interval: int = 600_000
    strict_lookup: bool = False
    region_name: str | None = None
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
