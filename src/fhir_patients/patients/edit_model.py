"""Edit a single patient locally and keep it in sync with the FHIR server.

A ``PatientEditModel`` owns one ``Draft`` and refers (by local key) to at
most one ``LocalRecord``. Where the patient stands is an explicit state:

  New          never saved locally, never uploaded
  SavedLocal   saved under a local key, no server id yet
  Synced       the server has accepted it at least once (has a server id)

Field setters and ``save()`` run on the caller's thread. ``upload()`` and
``download()`` check their preconditions synchronously, then run on the
model's single worker, so remote operations on one instance execute one at
a time in dispatch order. The instance lock is held for the whole of a
remote operation and by ``save()``; a save issued while an upload or
download is in flight waits for it to finish.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Union

from ..errors import OperationError, PersistenceError
from .models import ContactPoint, Draft, Gender, LocalRecord, Patient

if TYPE_CHECKING:
    from ..fhir.patient_gateway import PatientGateway
    from ..store.base import LocalStore

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Union[Exception, None]], None]


@dataclass(frozen=True)
class New:
    local_key: None = None
    server_id: None = None


@dataclass(frozen=True)
class SavedLocal:
    local_key: str
    server_id: None = None


@dataclass(frozen=True)
class Synced:
    server_id: str
    local_key: str | None = None


SyncState = Union[New, SavedLocal, Synced]


def _state_for(server_id: str | None, local_key: str | None) -> SyncState:
    if server_id is not None:
        return Synced(server_id=server_id, local_key=local_key)
    if local_key is not None:
        return SavedLocal(local_key=local_key)
    return New()


class _Listeners:
    """Synchronous callbacks with an explicit unsubscribe handle."""

    def __init__(self) -> None:
        self._callbacks: dict[object, Callable[..., None]] = {}
        self._lock = threading.Lock()

    def add(self, callback: Callable[..., None]) -> Callable[[], None]:
        token = object()
        with self._lock:
            self._callbacks[token] = callback

        def unsubscribe() -> None:
            with self._lock:
                self._callbacks.pop(token, None)

        return unsubscribe

    def notify(self, *args: object) -> None:
        with self._lock:
            callbacks = list(self._callbacks.values())
        for callback in callbacks:
            callback(*args)


class PatientEditModel:
    """Show and/or edit the details of one patient."""

    def __init__(
        self,
        store: LocalStore,
        gateway: PatientGateway,
        patient: Patient | None = None,
        local_key: str | None = None,
        executor: Executor | None = None,
    ) -> None:
        """
        Args:
            store: Local durable store for saved patients.
            gateway: Remote FHIR operations.
            patient: When given, the model edits this patient; otherwise it
                creates a new one.
            local_key: Local key of ``patient`` if it is already cached.
            executor: Runs remote operations. Defaults to a private
                single-worker pool, shut down by ``close()``.
        """
        self._store = store
        self._gateway = gateway
        self._lock = threading.RLock()
        self._worker = threading.local()  # .active while callbacks run on the worker
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="patient-sync"
        )
        self._can_save_listeners = _Listeners()
        self._updated_listeners = _Listeners()
        self._draft = Draft()
        self._state: SyncState = New()
        self.initialize(patient, local_key)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def initialize(self, patient: Patient | None = None, local_key: str | None = None) -> None:
        """Start a blank draft, or populate the draft from ``patient``.

        A patient that carries a server id but no ``local_key`` is matched
        against the local store so an already cached copy is reused.
        """
        with self._lock:
            if patient is None:
                self._draft = Draft()
                self._state = New()
            else:
                if local_key is None and patient.id is not None:
                    cached = self._store.get_by_server_id(patient.id)
                    local_key = cached.local_key if cached is not None else None
                self._draft = Draft.from_patient(patient)
                self._state = _state_for(patient.id, local_key)
        self._notify_can_save()

    def load(self, local_key: str) -> None:
        """Initialize from the record cached under ``local_key``.

        Raises:
            OperationError: if no such record exists.
        """
        record = self._store.get(local_key)
        if record is None:
            raise OperationError(f"No locally saved patient under key {local_key!r}")
        self.initialize(record.patient, record.local_key)

    def close(self) -> None:
        """Shut down the model's own executor after queued operations finish.

        Called from a completion callback or listener, it cannot wait for
        the worker it is running on, so it only stops new submissions.
        """
        if self._owns_executor:
            self._executor.shutdown(wait=not getattr(self._worker, "active", False))

    def __enter__(self) -> "PatientEditModel":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe_can_save(self, callback: Callable[[bool], None]) -> Callable[[], None]:
        """Call ``callback(can_save)`` after every field change. Returns an unsubscribe function."""
        return self._can_save_listeners.add(callback)

    def subscribe_patient_updated(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback()`` after a successful upload or download. Returns an unsubscribe function."""
        return self._updated_listeners.add(callback)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def local_key(self) -> str | None:
        return self._state.local_key

    @property
    def server_id(self) -> str | None:
        return self._state.server_id

    @property
    def reference(self) -> str | None:
        """``Patient/<id>`` once uploaded, otherwise ``None``."""
        return self._draft.to_patient(self.server_id).reference

    @property
    def draft(self) -> Draft:
        """A copy of the working draft."""
        return self._draft.model_copy(deep=True)

    @property
    def can_save(self) -> bool:
        return self._draft.can_save

    @property
    def can_download(self) -> bool:
        return isinstance(self._state, Synced)

    @property
    def can_upload(self) -> bool:
        local_key = self.local_key
        return local_key is not None and self._store.get(local_key) is not None

    # ------------------------------------------------------------------
    # Editable fields
    # ------------------------------------------------------------------

    @property
    def given_name(self) -> str | None:
        return self._draft.given_name

    @given_name.setter
    def given_name(self, value: str | None) -> None:
        self._draft.given_name = value
        self._notify_can_save()

    @property
    def family_name(self) -> str | None:
        return self._draft.family_name

    @family_name.setter
    def family_name(self, value: str | None) -> None:
        self._draft.family_name = value
        self._notify_can_save()

    @property
    def birth_date(self) -> date | None:
        return self._draft.birth_date

    @birth_date.setter
    def birth_date(self, value: date | None) -> None:
        self._draft.birth_date = value
        self._notify_can_save()

    @property
    def gender(self) -> Gender | None:
        return self._draft.gender

    @gender.setter
    def gender(self, value: Gender | None) -> None:
        self._draft.gender = value
        self._notify_can_save()

    @property
    def telecom(self) -> list[ContactPoint]:
        return list(self._draft.telecom)

    @telecom.setter
    def telecom(self, value: list[ContactPoint]) -> None:
        self._draft.telecom = [t.model_copy() for t in value]
        self._notify_can_save()

    @property
    def photo(self) -> bytes | None:
        return self._draft.photo

    @photo.setter
    def photo(self, value: bytes | None) -> None:
        self._draft.photo = value
        self._notify_can_save()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def save(self) -> bool:
        """Persist the draft to the local store.

        The first save assigns a local key; later saves overwrite the same
        record. No server id is ever assigned here.

        Returns:
            ``False`` (and logs why) if required fields are missing, else ``True``.

        Raises:
            PersistenceError: if the local store write fails.
        """
        with self._lock:
            if not self._draft.can_save:
                logger.warning("Cannot save the patient yet: required fields are missing")
                return False

            local_key = self.local_key or uuid.uuid4().hex
            server_id = self.server_id
            record = LocalRecord(local_key=local_key, patient=self._draft.to_patient(server_id))
            self._write(record)
            self._state = _state_for(server_id, local_key)
        logger.info("Saved patient locally under key %s", local_key)
        return True

    def upload(self, on_complete: CompletionCallback | None = None) -> Future:
        """Create the saved patient on the server, or update it if it already has an id.

        Args:
            on_complete: Called exactly once with ``None`` on success, or with
                the ``RemoteError`` / ``TransportError`` / ``PersistenceError``
                that stopped the upload.

        Returns:
            A future resolving to the same value passed to ``on_complete``.

        Raises:
            OperationError: if the patient has not been saved locally yet.
                No request is made.
        """
        if not self.can_upload:
            logger.warning("Cannot upload the patient: it has not been saved locally")
            raise OperationError("Cannot upload the patient at this time. Has the patient been saved?")
        return self._dispatch("upload", self._upload, on_complete)

    def download(self, on_complete: CompletionCallback | None = None) -> Future:
        """Replace the local patient with the server's copy.

        Args:
            on_complete: Called exactly once with ``None`` on success, or with
                the error that stopped the download. Prior state is left
                untouched on failure.

        Returns:
            A future resolving to the same value passed to ``on_complete``.

        Raises:
            OperationError: if the patient has no server id. No request is made.
        """
        if not self.can_download:
            logger.warning("Cannot download the patient: it has no server id")
            raise OperationError(
                "Cannot download the patient at this time. Does the patient have a proper FHIR reference?"
            )
        return self._dispatch("download", self._download, on_complete)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _upload(self) -> None:
        local_key = self.local_key
        record = self._store.get(local_key) if local_key is not None else None
        if record is None:
            raise PersistenceError(f"Local record {local_key} is gone; nothing to upload")

        if record.server_id is None:
            remote = self._gateway.create(record.patient)
        else:
            remote = self._gateway.update(record.server_id, record.patient)
        self._replace(record.local_key, remote)

    def _download(self) -> None:
        server_id = self.server_id
        remote = self._gateway.fetch_by_id(server_id)  # type: ignore[arg-type]

        local_key = self.local_key
        if local_key is None:
            cached = self._store.get_by_server_id(remote.id or server_id)  # type: ignore[arg-type]
            local_key = cached.local_key if cached is not None else uuid.uuid4().hex
        self._replace(local_key, remote)

    def _replace(self, local_key: str, remote: Patient) -> None:
        """Make the server representation the local truth: store first, then the draft."""
        self._write(LocalRecord(local_key=local_key, patient=remote))
        self._draft = Draft.from_patient(remote)
        self._state = _state_for(remote.id, local_key)

    def _write(self, record: LocalRecord) -> None:
        try:
            self._store.upsert(record)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Cannot write local record {record.local_key}: {exc}") from exc

    def _dispatch(
        self,
        operation: str,
        work: Callable[[], None],
        on_complete: CompletionCallback | None,
    ) -> Future:
        def run() -> Exception | None:
            error: Exception | None = None
            with self._lock:
                try:
                    work()
                except Exception as exc:  # reported through on_complete
                    logger.error("Patient %s failed: %s", operation, exc)
                    error = exc

            self._worker.active = True
            try:
                if error is None:
                    logger.info("Patient %s finished for %s", operation, self.reference)
                    for notify in (self._updated_listeners.notify, self._notify_can_save):
                        try:
                            notify()
                        except Exception:  # a listener must not suppress on_complete
                            logger.exception("Patient %s listener raised", operation)
                if on_complete is not None:
                    try:
                        on_complete(error)
                    except Exception:  # the future resolves to the operation's outcome
                        logger.exception("Patient %s completion callback raised", operation)
            finally:
                self._worker.active = False
            return error

        return self._executor.submit(run)

    def _notify_can_save(self) -> None:
        self._can_save_listeners.notify(self.can_save)
