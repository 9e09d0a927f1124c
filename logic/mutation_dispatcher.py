"""Item writes with a direct-store primary path and a server fallback."""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from closet_app.logging_config import get_logger, log_event, operation_context
from logic.error_classification import FailureClass, classify_remote_error
from logic.upload_coordinator import AssetUploadCoordinator
from memory.item_collection import ItemCollection
from models.wardrobe_item import from_record, sanitize_payload, validate_updates
from tools.auth_session import AuthSession, AuthSessionError
from tools.remote_store import RemoteStoreError, WardrobeTable
from tools.trusted_api import TrustedApiClient, TrustedApiError

logger = get_logger(__name__)

IDEMPOTENCY_NAMESPACE = uuid.UUID("8f3c2a5e-6d1b-4c7e-9a0f-2b6e4d8c1a37")
DEFAULT_MAX_REMEMBERED_KEYS = 256


class MutationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MutationOutcome(str, Enum):
    SUCCESS = "success"
    RECOVERED = "recovered"
    FAILED = "failed"


class MutationError(RuntimeError):
    """Single user-facing message for a write that could not be completed."""


@dataclass
class PathAttempt:
    path: str
    succeeded: bool
    failure_class: Optional[FailureClass] = None
    error: Optional[str] = None


@dataclass
class MutationAttempt:
    """Record of one dispatch cycle, kept for diagnostics."""

    kind: MutationKind
    payload: Dict[str, Any]
    item_id: Optional[str] = None
    attempts: List[PathAttempt] = field(default_factory=list)
    outcome: Optional[MutationOutcome] = None
    record: Optional[Dict[str, Any]] = None


def idempotent_item_id(owner_id: str, key: str) -> str:
    return str(uuid.uuid5(IDEMPOTENCY_NAMESPACE, f"{owner_id}:{key}"))


class MutationDispatcher:
    """Persists creates, updates and deletes for the signed-in user.

    The hosted table is tried first under the user's own credentials. Any
    classified failure, or a call that touched zero rows, sends the same
    mutation to the trusted server instead. The two paths never run in
    parallel. On success the in-memory collection is patched rather than
    reloaded.
    """

    def __init__(
        self,
        table: WardrobeTable,
        trusted_api: TrustedApiClient,
        session: AuthSession,
        collection: ItemCollection | None = None,
        upload_coordinator: AssetUploadCoordinator | None = None,
        max_remembered_keys: int = DEFAULT_MAX_REMEMBERED_KEYS,
    ) -> None:
        if max_remembered_keys < 1:
            raise ValueError("max_remembered_keys must be positive")
        self.table = table
        self.trusted_api = trusted_api
        self.session = session
        self.collection = collection if collection is not None else ItemCollection()
        self.upload_coordinator = upload_coordinator
        self.last_attempt: Optional[MutationAttempt] = None
        self.max_remembered_keys = max_remembered_keys
        self._completed: "OrderedDict[Tuple[str, str], Dict[str, Any]]" = OrderedDict()

    def create(self, payload: Dict[str, Any], idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        return self.dispatch(MutationKind.CREATE, payload, idempotency_key=idempotency_key)

    def update(
        self, item_id: str, updates: Dict[str, Any], idempotency_key: Optional[str] = None
    ) -> Dict[str, Any]:
        return self.dispatch(MutationKind.UPDATE, updates, item_id=item_id, idempotency_key=idempotency_key)

    def delete(self, item_id: str, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        return self.dispatch(MutationKind.DELETE, {}, item_id=item_id, idempotency_key=idempotency_key)

    def log_worn(self, item_id: str, when: Optional[str] = None) -> Dict[str, Any]:
        """Record one more wear of an item."""

        current = self.collection.get(item_id)
        if current is None:
            try:
                current = self.table.get(item_id)
            except RemoteStoreError as exc:
                raise MutationError(f"Could not load item: {exc.message}") from exc
        if current is None:
            raise MutationError("Item not found")
        wear_count = int(current.get("wear_count") or 0) + 1
        return self.update(
            item_id, {"wear_count": wear_count, "last_worn": when or date.today().isoformat()}
        )

    def dispatch(
        self,
        kind: MutationKind,
        payload: Optional[Dict[str, Any]] = None,
        item_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        kind = MutationKind(kind)
        user = self.session.current_user
        if not user:
            raise MutationError("You must be logged in to manage your wardrobe")

        dedupe_key = (user.id, f"{kind.value}:{idempotency_key}") if idempotency_key else None
        if dedupe_key and dedupe_key in self._completed:
            log_event(logger, logging.INFO, "mutation_deduplicated", kind=kind.value)
            return dict(self._completed[dedupe_key])

        with operation_context(f"mutation:{kind.value}"):
            self._refresh_session()
            values = self._prepare(kind, dict(payload or {}), item_id, user.id, idempotency_key)
            attempt = MutationAttempt(kind=kind, payload=values, item_id=item_id or values.get("item_id"))
            self.last_attempt = attempt

            record = self._run_primary(attempt, user.id)
            if record is not None:
                attempt.outcome = MutationOutcome.SUCCESS
            else:
                record = self._run_fallback(attempt)
                attempt.outcome = MutationOutcome.RECOVERED

            attempt.record = record
            self._apply_to_collection(kind, attempt.item_id, record)
            if dedupe_key:
                self._remember(dedupe_key, record)
            log_event(
                logger,
                logging.INFO,
                "mutation_completed",
                kind=kind.value,
                outcome=attempt.outcome.value,
                item_id=attempt.item_id,
            )
            return record

    def _remember(self, dedupe_key: Tuple[str, str], record: Dict[str, Any]) -> None:
        self._completed[dedupe_key] = dict(record)
        while len(self._completed) > self.max_remembered_keys:
            self._completed.popitem(last=False)

    def _refresh_session(self) -> None:
        try:
            self.session.refresh_session()
        except AuthSessionError as exc:
            log_event(logger, logging.WARNING, "session_refresh_failed", error=str(exc))

    def _prepare(
        self,
        kind: MutationKind,
        payload: Dict[str, Any],
        item_id: Optional[str],
        owner_id: str,
        idempotency_key: Optional[str],
    ) -> Dict[str, Any]:
        try:
            if kind is MutationKind.CREATE:
                row = sanitize_payload(payload, allow_identity=False)
                if item_id or payload.get("item_id"):
                    row["item_id"] = item_id or payload["item_id"]
                elif idempotency_key:
                    row["item_id"] = idempotent_item_id(owner_id, idempotency_key)
                else:
                    row["item_id"] = str(uuid.uuid4())
                row["user_id"] = owner_id
                row["created_at"] = datetime.now(timezone.utc).isoformat()
                return from_record(row).to_record()

            if not item_id:
                raise ValueError(f"An item id is required to {kind.value} an item")
            if kind is MutationKind.DELETE:
                return {}

            updates = validate_updates(payload)
            if not updates:
                raise ValueError("No changes to save")
            if "wear_count" in updates:
                known = self._current_item(item_id) or {}
                if updates["wear_count"] < int(known.get("wear_count") or 0):
                    raise ValueError("Wear count cannot decrease")
            return updates
        except ValueError as exc:
            raise MutationError(str(exc)) from exc

    def _current_item(self, item_id: str) -> Optional[Dict[str, Any]]:
        cached = self.collection.get(item_id)
        if cached is not None:
            return cached
        try:
            return self.table.get(item_id)
        except RemoteStoreError as exc:
            # The trusted server checks the stored count again on fallback.
            log_event(logger, logging.WARNING, "mutation_lookup_failed", item_id=item_id, error=exc.message)
            return None

    def _run_primary(self, attempt: MutationAttempt, owner_id: str) -> Optional[Dict[str, Any]]:
        item_id = attempt.item_id or ""
        existing = self.collection.get(item_id) if attempt.kind is MutationKind.DELETE else None
        try:
            if attempt.kind is MutationKind.CREATE:
                rows = self.table.insert(attempt.payload)
            elif attempt.kind is MutationKind.UPDATE:
                rows = self.table.update(item_id, owner_id, attempt.payload)
            else:
                rows = self.table.delete(item_id, owner_id)
        except RemoteStoreError as exc:
            failure_class = classify_remote_error(exc)
            attempt.attempts.append(
                PathAttempt("primary", False, failure_class=failure_class, error=exc.message)
            )
            log_event(
                logger,
                logging.WARNING,
                "mutation_primary_failed",
                kind=attempt.kind.value,
                failure_class=failure_class.value,
                error_code=exc.code,
                error=exc.message,
            )
            return None

        if not rows:
            # Row-level security filters silently: nothing matched for this owner.
            attempt.attempts.append(
                PathAttempt(
                    "primary",
                    False,
                    failure_class=FailureClass.PERMISSION_DENIED,
                    error="No rows were affected",
                )
            )
            log_event(
                logger,
                logging.WARNING,
                "mutation_primary_empty",
                kind=attempt.kind.value,
                item_id=item_id,
            )
            return None

        attempt.attempts.append(PathAttempt("primary", True))
        record = dict(rows[0])
        if attempt.kind is MutationKind.DELETE and self.upload_coordinator:
            image_path = record.get("image_path") or (existing or {}).get("image_path")
            if image_path:
                self.upload_coordinator.remove_asset(image_path)
        return record

    def _run_fallback(self, attempt: MutationAttempt) -> Dict[str, Any]:
        item_id = attempt.item_id or ""
        try:
            if attempt.kind is MutationKind.CREATE:
                record = self.trusted_api.add_item(attempt.payload)
            elif attempt.kind is MutationKind.UPDATE:
                record = self.trusted_api.update_item(item_id, attempt.payload)
            else:
                self.trusted_api.delete_item(item_id)
                record = self.collection.get(item_id) or {"item_id": item_id}
        except TrustedApiError as exc:
            attempt.attempts.append(PathAttempt("fallback", False, error=exc.message))
            attempt.outcome = MutationOutcome.FAILED
            log_event(
                logger,
                logging.ERROR,
                "mutation_failed",
                kind=attempt.kind.value,
                status_code=exc.status_code,
                error=exc.message,
            )
            raise MutationError(exc.message) from exc

        attempt.attempts.append(PathAttempt("fallback", True))
        return dict(record)

    def _apply_to_collection(self, kind: MutationKind, item_id: Optional[str], record: Dict[str, Any]) -> None:
        if kind is MutationKind.CREATE:
            self.collection.append(record)
        elif kind is MutationKind.UPDATE:
            merged = {**(self.collection.get(item_id or "") or {}), **record}
            self.collection.replace(merged)
        else:
            self.collection.remove(item_id or "")


__all__ = [
    "MutationAttempt",
    "MutationDispatcher",
    "MutationError",
    "MutationKind",
    "MutationOutcome",
    "PathAttempt",
    "idempotent_item_id",
]
