"""
Remote Sync Client

Posts sample trees to the warehouse and writes the assigned ids back.

Per record:  IDLE -> SENDING -> SUCCESS | CONFLICT_RECOVERED | FAILED

- A record that is SYNCED or already SYNCHRONISING is skipped, so two
  concurrent calls for the same record make a single request.
- 2xx: ids are matched to local entities through their external keys.
- 409: a previous attempt already landed; the ids listed in the error
  payload are applied as if the request had succeeded.
- Anything else: the error is raised and ids/timestamps stay untouched,
  so the record can simply be retried.

Only creation is implemented; update, read and delete raise
UnsupportedOperationError.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

import httpx

from .config import SyncConfig
from .errors import (
    FieldSyncError,
    NetworkError,
    ProtocolError,
    RemoteError,
    UnsupportedOperationError,
)
from .event_bus import EventBus, get_event_bus
from .events import RecordSyncedEvent, SyncErrorEvent, SyncRequestEvent
from .keys import DEFAULT_KEYS, WarehouseKeys
from .media import build_media_parts
from .status import SyncStatus
from .utils import to_jsonable

if TYPE_CHECKING:
    from .models.sample import Sample

logger = logging.getLogger(__name__)


class SyncOutcome(Enum):
    """
    Result of one record sync attempt.

    SKIPPED: Nothing sent (already synced or in flight)
    SUCCESS: Warehouse created the record
    CONFLICT_RECOVERED: Warehouse already had it (409), ids recovered
    INVALID: Failed remote validation, nothing sent
    FAILED: Request or response failed, record unchanged
    """
    SKIPPED = "skipped"
    SUCCESS = "success"
    CONFLICT_RECOVERED = "conflict_recovered"
    INVALID = "invalid"
    FAILED = "failed"


@dataclass
class SyncResult:
    """
    Settled outcome of a record sync.

    Attributes:
        cid: Client id of the root sample
        outcome: What happened
        server_id: Warehouse id of the root sample after the attempt
        status: Resolved sync status after the attempt
        error: The exception for INVALID / FAILED outcomes
    """
    cid: str
    outcome: SyncOutcome
    server_id: Optional[int] = None
    status: Optional[SyncStatus] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        """True when the warehouse holds the record."""
        return self.outcome in (SyncOutcome.SUCCESS, SyncOutcome.CONFLICT_RECOVERED)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "cid": self.cid,
            "outcome": self.outcome.value,
            "server_id": self.server_id,
            "status": self.status.value if self.status else None,
            "error": str(self.error) if self.error else None,
        }


def _coerce_id(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ProtocolError(f"Invalid warehouse id in response: {value!r}") from None


def collect_remote_ids(data: Dict[str, Any]) -> Dict[str, int]:
    """
    Walk a success response tree collecting external_key -> id.

    Args:
        data: The "data" object of a success response

    Returns:
        Mapping of client id to warehouse id for every node with both keys
    """
    remote_ids: Dict[str, int] = {}

    def walk(node: Any) -> None:
        if not isinstance(node, dict):
            raise ProtocolError(f"Unexpected node in response: {node!r}")
        external_key = node.get("external_key")
        if external_key and node.get("id") is not None:
            remote_ids[external_key] = _coerce_id(node["id"])
        for kind in ("samples", "occurrences", "media"):
            children = node.get(kind) or []
            if not isinstance(children, list):
                raise ProtocolError(f"'{kind}' in response is not a list")
            for child in children:
                walk(child)

    walk(data)
    return remote_ids


def conflict_remote_ids(body: Any) -> Dict[str, int]:
    """
    Collect ids from a 409 duplicate payload.

    Each error entry names the existing record (external_key/id) and the
    sample it belongs to (sample_external_key/sample_id). Every entry is
    applied, so several duplicates in one answer are all recovered.

    Raises:
        ProtocolError: If the payload has no usable error entries
    """
    errors = body.get("errors") if isinstance(body, dict) else None
    if not isinstance(errors, list) or not errors:
        raise ProtocolError("Conflict response carries no error entries")

    remote_ids: Dict[str, int] = {}
    for entry in errors:
        if not isinstance(entry, dict):
            continue
        if entry.get("sample_external_key") and entry.get("sample_id") is not None:
            remote_ids[entry["sample_external_key"]] = _coerce_id(entry["sample_id"])
        if entry.get("external_key") and entry.get("id") is not None:
            remote_ids[entry["external_key"]] = _coerce_id(entry["id"])

    if not remote_ids:
        raise ProtocolError("Conflict response carries no record ids")
    return remote_ids


def _error_message(response: httpx.Response, body: Any) -> str:
    errors = body.get("errors") if isinstance(body, dict) else None
    if isinstance(errors, list):
        titles = [str(e.get("title")) for e in errors if isinstance(e, dict) and e.get("title")]
        if titles:
            return "\n".join(titles)
    return f"Warehouse answered {response.status_code} {response.reason_phrase}".strip()


class RemoteSyncClient:
    """
    HTTP client creating samples on the warehouse.

    Usage:
        async with RemoteSyncClient(config) as client:
            result = await client.create(sample)
    """

    def __init__(
        self,
        config: SyncConfig,
        keys: Optional[WarehouseKeys] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        event_bus: Optional[EventBus] = None,
    ):
        """
        Args:
            config: Warehouse configuration
            keys: Warehouse key tables (default: DEFAULT_KEYS)
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
            event_bus: Bus for sync events (default: the global bus)
        """
        self.config = config
        self.keys = keys or DEFAULT_KEYS
        self.event_bus = event_bus or get_event_bus()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                timeout=self.config.get_timeout(),
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    # ==================== Operations ====================

    async def sync(self, method: str, sample: 'Sample', timeout: Optional[float] = None) -> SyncResult:
        """
        Dispatch a remote operation by name.

        Raises:
            UnsupportedOperationError: For anything but "create"
        """
        if method == "create":
            return await self.create(sample, timeout=timeout)
        if method in ("update", "read", "delete"):
            handler = getattr(self, method)
            return await handler(sample)
        raise UnsupportedOperationError(f"No such remote sync operation: {method}")

    async def update(self, sample: 'Sample') -> SyncResult:
        raise UnsupportedOperationError("Updating a remote record is not supported")

    async def read(self, sample: 'Sample') -> SyncResult:
        raise UnsupportedOperationError("Reading a remote record is not supported")

    async def delete(self, sample: 'Sample') -> SyncResult:
        raise UnsupportedOperationError("Deleting a remote record is not supported")

    async def create(self, sample: 'Sample', timeout: Optional[float] = None) -> SyncResult:
        """
        Create a sample tree on the warehouse.

        Args:
            sample: Root sample
            timeout: Per-call timeout override in seconds

        Returns:
            SyncResult with SKIPPED, SUCCESS or CONFLICT_RECOVERED

        Raises:
            ConfigError: If no host_url is configured
            NetworkError: On timeouts, connection failures and unreadable media
            RemoteError: On error statuses other than 409
            ProtocolError: On malformed responses
        """
        self.config.validate()

        status = sample.get_sync_status()
        if status in (SyncStatus.SYNCED, SyncStatus.SYNCHRONISING):
            logger.debug(f"Skipping {sample.cid}: {status.value}")
            return SyncResult(sample.cid, SyncOutcome.SKIPPED, server_id=sample.id, status=status)

        # set before the first await: concurrent callers now see SYNCHRONISING
        sample.synchronising = True
        try:
            timeout = self.config.get_timeout(timeout)
            submission, media = await self._get_model_data(sample)
            request = await self._normalise_model_data(submission, media, timeout)

            url = self.config.samples_url
            self.event_bus.publish(SyncRequestEvent(cid=sample.cid, url=url, media_count=len(media)))
            response = await self._post(url, request, timeout)

            remote_ids, outcome = self._parse_response(response)
            if sample.id is None and sample.cid not in remote_ids:
                raise ProtocolError(f"Response carries no id for sample {sample.cid}")
        except Exception as e:
            logger.error(f"Sync of {sample.cid} failed: {e}", exc_info=not isinstance(e, FieldSyncError))
            self.event_bus.publish(
                SyncErrorEvent(cid=sample.cid, error=str(e), error_type=type(e).__name__)
            )
            raise
        finally:
            sample.synchronising = False

        # all-or-nothing: only a fully parsed answer reaches this point
        assigned = sample.apply_server_ids(remote_ids)
        sample.mark_synced(datetime.now())

        if outcome is SyncOutcome.CONFLICT_RECOVERED:
            logger.info(f"Recovered duplicate {sample.cid} as warehouse id {sample.id} ({assigned} ids)")
        else:
            logger.info(f"Synced {sample.cid} as warehouse id {sample.id} ({assigned} ids)")

        self.event_bus.publish(
            RecordSyncedEvent(cid=sample.cid, server_id=sample.id, outcome=outcome.value)
        )
        return SyncResult(
            sample.cid, outcome, server_id=sample.id, status=sample.get_sync_status()
        )

    # ==================== Request ====================

    async def _get_model_data(self, sample: 'Sample') -> Tuple[Dict[str, Any], List[Any]]:
        """Build the submission and media list, applying the on_send hook."""
        submission, media = sample.get_submission(self.keys)
        submission["type"] = "samples"
        if submission.get("survey_id") is None and self.config.survey_id is not None:
            submission["survey_id"] = self.config.survey_id

        if self.config.on_send:
            submission, media = await self.config.on_send(submission, media)
        return submission, list(media or [])

    async def _normalise_model_data(
        self,
        submission: Dict[str, Any],
        media: List[Any],
        timeout: float,
    ) -> Dict[str, Any]:
        """
        Build httpx request arguments: a JSON body, or a multipart body
        when media is present so the record goes up in one request.
        """
        payload = json.dumps({"data": to_jsonable(submission)})

        if not media:
            return {"content": payload, "headers": {"Content-Type": "application/json"}}

        client = await self._get_client()
        files = await build_media_parts(media, client, timeout)
        data = {"submission": payload}
        data.update(self.config.get_form_auth())
        return {"data": data, "files": files}

    async def _post(self, url: str, request: Dict[str, Any], timeout: float) -> httpx.Response:
        """POST with auth headers, mapping transport failures to NetworkError."""
        client = await self._get_client()
        headers = self.config.get_headers()
        headers.update(request.pop("headers", {}))

        logger.debug(f"POST {url} (timeout {timeout}s)")
        try:
            return await client.post(url, headers=headers, timeout=timeout, **request)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request to {url} timed out after {timeout}s") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Request to {url} failed: {e}") from e

    # ==================== Response ====================

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError(f"Response is not JSON ({response.status_code})") from e

    def _parse_response(self, response: httpx.Response) -> Tuple[Dict[str, int], SyncOutcome]:
        """
        Turn a warehouse answer into client id -> warehouse id mappings.

        Raises:
            RemoteError: On error statuses other than 409
            ProtocolError: On malformed bodies
        """
        if response.status_code == 409:
            # an earlier attempt already created (part of) the record
            return conflict_remote_ids(self._json(response)), SyncOutcome.CONFLICT_RECOVERED

        if not response.is_success:
            try:
                body = response.json()
            except ValueError:
                body = None
            raise RemoteError(
                _error_message(response, body),
                status_code=response.status_code,
                response_data=body if isinstance(body, dict) else None,
            )

        body = self._json(response)
        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise ProtocolError("Response carries no 'data' object")
        return collect_remote_ids(data), SyncOutcome.SUCCESS
