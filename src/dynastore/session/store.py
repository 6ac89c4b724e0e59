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
"""DynamoDBSessionStore — session persistence with lazy and periodic expiry."""

from __future__ import annotations

import asyncio
import json
import math
import time
from types import TracebackType
from typing import Any

import structlog

from dynastore.kernel.exceptions import (
    BackendException,
    ScanException,
    SessionParseException,
    SessionSerializationException,
)
from dynastore.kernel.lifecycle import Lifecycle
from dynastore.session.adapters.dynamodb import DynamoDBClient
from dynastore.session.ports.outbound import KEY_ATTRIBUTE, KeyValueClient, LessThan, SessionStore
from dynastore.session.reaper import SessionReaper

logger = structlog.get_logger(__name__)

DEFAULT_PREFIX = "sess:"
DEFAULT_TABLE = "sessions"
DEFAULT_REAP_INTERVAL = 10 * 60 * 1000
ONE_DAY_MILLIS = 86_400_000
RECORD_TYPE = "dynastore-session"


def _now_millis() -> int:
    return int(time.time() * 1000)


def _ttl_millis(session: dict[str, Any]) -> int:
    """Return ``cookie.maxAge`` when it is a finite number, else one day."""
    cookie = session.get("cookie")
    max_age = cookie.get("maxAge") if isinstance(cookie, dict) else None
    if isinstance(max_age, bool) or not isinstance(max_age, (int, float)):
        return ONE_DAY_MILLIS
    if math.isfinite(max_age):
        return int(max_age)
    return ONE_DAY_MILLIS


class DynamoDBSessionStore(SessionStore, Lifecycle):
    """Stores sessions as JSON in a key-value table, DynamoDB by default.

    Each session lives in one record keyed ``prefix + sid`` holding the
    serialized payload (``sess``), an epoch-millisecond expiry
    (``expires``) and a provenance tag (``type``). Expired records read as
    absent and are physically removed by a :class:`SessionReaper` that
    scans the table every ``reap_interval`` milliseconds.

    The reaper is started at construction when an event loop is running,
    otherwise by :meth:`start` (or by entering ``async with store``).
    Callers own its lifetime and must call :meth:`shutdown` (or leave the
    ``async with`` block) when done with the store.

    There is no locking: two concurrent :meth:`set` calls for the same sid
    race on the lookup and the last write wins.

    Args:
        client: Backend client. A :class:`DynamoDBClient` built from the
            credential arguments is used when omitted.
        prefix: Prepended to every sid; ``None`` selects ``"sess:"``.
        table: Table name.
        reap_interval: Milliseconds between reap passes; ``<= 0`` disables.
        strict_lookup: Re-raise lookup failures in :meth:`set` instead of
            treating them as "no existing record".
        access_key_id: AWS access key id for the default client.
        secret_access_key: AWS secret access key for the default client.
        region_name: AWS region for the default client.
        endpoint_url: Endpoint override for the default client.
    """

    def __init__(
        self,
        client: KeyValueClient | None = None,
        *,
        prefix: str | None = None,
        table: str | None = None,
        reap_interval: int = DEFAULT_REAP_INTERVAL,
        strict_lookup: bool = False,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        region_name: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        if client is None:
            client = DynamoDBClient(
                region_name=region_name,
                endpoint_url=endpoint_url,
                access_key_id=access_key_id,
                secret_access_key=secret_access_key,
            )
        self._client = client
        self._prefix = DEFAULT_PREFIX if prefix is None else prefix
        self._table = table or DEFAULT_TABLE
        self._strict_lookup = strict_lookup
        self._reaper = SessionReaper(self.reap, reap_interval)

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            self._reaper.start()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def client(self) -> KeyValueClient:
        return self._client

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def table(self) -> str:
        return self._table

    @property
    def reap_interval(self) -> int:
        return self._reaper.interval

    @property
    def reaper(self) -> SessionReaper:
        return self._reaper

    def _key(self, sid: str) -> str:
        return f"{self._prefix}{sid}"

    def _expires(self, record: dict[str, Any], key: str) -> int | float | None:
        """Return the record's expiry, ``None`` when it carries none."""
        expires = record.get("expires")
        if expires is None:
            return None
        if isinstance(expires, bool) or not isinstance(expires, (int, float)):
            raise SessionParseException(
                f"Stored session '{key}' has a non-numeric expiry",
                code="SESSION_PARSE",
                context={"key": key, "table": self._table},
            )
        return expires

    # ------------------------------------------------------------------
    # Session operations
    # ------------------------------------------------------------------

    async def get(self, sid: str) -> dict[str, Any] | None:
        """Return the session for *sid*, or ``None`` if missing or expired.

        Expired records are left in place for the reaper.

        Raises:
            SessionParseException: The stored payload is not a JSON object
                or the stored expiry is not a number.
            BackendException: The lookup failed.
        """
        key = self._key(sid)
        logger.debug("session_get", key=key)
        now = _now_millis()
        record = await self._client.get_item(self._table, key)
        if record is None:
            return None

        expires = self._expires(record, key)
        if expires and now >= expires:
            logger.debug("session_expired", key=key, expires=expires)
            return None

        try:
            session = json.loads(record["sess"])
        except (KeyError, TypeError, ValueError) as exc:
            raise SessionParseException(
                f"Stored session '{key}' could not be deserialized",
                code="SESSION_PARSE",
                context={"key": key, "table": self._table},
            ) from exc
        if not isinstance(session, dict):
            raise SessionParseException(
                f"Stored session '{key}' is not a JSON object",
                code="SESSION_PARSE",
                context={"key": key, "table": self._table},
            )
        return session

    async def set(self, sid: str, session: dict[str, Any]) -> None:
        """Store *session* for *sid*.

        The record expires ``session["cookie"]["maxAge"]`` milliseconds from
        now, or after one day when no numeric maxAge is present. A new
        record is inserted when none exists; otherwise only ``expires`` and
        ``sess`` are updated.

        Raises:
            SessionSerializationException: *session* is not JSON-serializable.
            BackendException: The write failed, or the lookup failed and
                ``strict_lookup`` is enabled.
        """
        key = self._key(sid)
        try:
            sess = json.dumps(session)
        except (TypeError, ValueError) as exc:
            raise SessionSerializationException(
                f"Session '{key}' could not be serialized",
                code="SESSION_SERIALIZE",
                context={"key": key},
            ) from exc

        try:
            existing = await self._client.get_item(self._table, key)
        except BackendException as exc:
            if self._strict_lookup:
                raise
            logger.warning("session_lookup_failed", key=key, error=str(exc), error_code=exc.code)
            existing = None

        expires = _now_millis() + _ttl_millis(session)
        if existing is None:
            logger.debug("session_insert", key=key, expires=expires)
            await self._client.put_item(
                self._table,
                {KEY_ATTRIBUTE: key, "expires": expires, "type": RECORD_TYPE, "sess": sess},
            )
        else:
            logger.debug("session_update", key=key, expires=expires)
            await self._client.update_item(self._table, key, {"expires": expires, "sess": sess})

    async def destroy(self, sid: str) -> None:
        """Delete the session for *sid*. Deleting a missing session succeeds."""
        key = self._key(sid)
        logger.debug("session_destroy", key=key)
        await self._client.delete_item(self._table, key)

    def destroy_nowait(self, sid: str) -> asyncio.Task[None]:
        """Schedule :meth:`destroy` and return its task without awaiting it.

        A failure is logged if the task finishes with an error; awaiting
        the task re-raises it to the caller.
        """
        task = asyncio.get_running_loop().create_task(self.destroy(sid))
        task.add_done_callback(self._destroy_done_callback)
        return task

    @staticmethod
    def _destroy_done_callback(task: asyncio.Task[None]) -> None:
        if not task.cancelled():
            exc = task.exception()
            if exc is not None:
                logger.error("session_destroy_failed", error=str(exc), error_type=type(exc).__name__)

    async def exists(self, sid: str) -> bool:
        """Check whether *sid* has a stored, unexpired session."""
        key = self._key(sid)
        record = await self._client.get_item(self._table, key)
        if record is None:
            return False
        expires = self._expires(record, key)
        return not (expires and _now_millis() >= expires)

    async def reap(self) -> int:
        """Delete every record that expired before now. Return the count deleted.

        Deletions run one at a time. A failed deletion is logged and the
        pass moves on; records outside this store's prefix are skipped.

        Raises:
            ScanException: The scan failed; nothing was deleted.
        """
        now = _now_millis()
        try:
            records = await self._client.scan(
                self._table, LessThan("expires", now), (KEY_ATTRIBUTE,)
            )
        except BackendException as exc:
            raise ScanException(
                f"Scan for expired sessions in '{self._table}' failed: {exc}",
                code=exc.code,
                context={"table": self._table, **exc.context},
            ) from exc

        removed = 0
        for record in records:
            key = record.get(KEY_ATTRIBUTE)
            if not isinstance(key, str) or not key.startswith(self._prefix):
                continue
            try:
                await self.destroy(key[len(self._prefix):])
            except BackendException as exc:
                logger.warning("session_reap_destroy_failed", key=key, error=str(exc))
                continue
            removed += 1

        logger.info("session_reap_completed", table=self._table, matched=len(records), removed=removed)
        return removed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the reaper if it is enabled and not already running."""
        self._reaper.start()

    async def stop(self) -> None:
        await self.shutdown()

    async def shutdown(self) -> None:
        """Stop the reaper. Idempotent, and safe if it never started."""
        await self._reaper.shutdown()

    async def __aenter__(self) -> DynamoDBSessionStore:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.shutdown()
