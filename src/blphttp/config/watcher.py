"""Live reload of the certificate revocation list.

The watcher observes the CRL's parent directory with :mod:`watchdog`
for the lifetime of the process.  Every create/modify/move-into event
for the CRL path re-reads the whole file, swaps it into
:attr:`HttpsServerOptions.crl <blphttp.config.options.HttpsServerOptions.crl>`
and emits ``"https.crl"`` on the owning :class:`ChangeNotifier`.

States::

    IDLE --arm()--> ARMED --fs event--> RELOADING --> ARMED

A reload whose file can't be read or doesn't parse as a CRL (e.g. an
external tool is halfway through rewriting it) keeps the previous
buffer, logs a :class:`ReloadReadError` and emits nothing; the write
that completes the file triggers the next reload.
"""

from __future__ import annotations

import logging
import os
import threading
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from cryptography import x509
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from blphttp.config.errors import ReloadReadError
from blphttp.config.events import CRL_CHANGED

if TYPE_CHECKING:
    from collections.abc import Callable

    from blphttp.config.notifier import ChangeNotifier
    from blphttp.config.options import HttpsServerOptions

log = logging.getLogger(__name__)

_PEM_MARKER = b"-----BEGIN"


def read_revocation_list(path: str | Path) -> bytes:
    """Read *path* and check that it holds a PEM or DER encoded CRL.

    Raises :class:`OSError` when the file can't be read and
    :class:`ValueError` when its contents are not a CRL.
    """
    data = Path(path).read_bytes()
    if _PEM_MARKER in data:
        x509.load_pem_x509_crl(data)
    else:
        x509.load_der_x509_crl(data)
    return data


class WatcherState(StrEnum):
    IDLE = "idle"
    ARMED = "armed"
    RELOADING = "reloading"


class _CrlEventHandler(FileSystemEventHandler):
    """Forward events that touch the CRL path to the watcher."""

    def __init__(self, watcher: RevocationListWatcher) -> None:
        super().__init__()
        self._watcher = watcher

    def _matches(self, raw_path: Any) -> bool:  # noqa: ANN401
        if not raw_path:
            return False
        return Path(os.fsdecode(raw_path)).resolve() == self._watcher.path

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._watcher.reload()

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(event.src_path):
            self._watcher.reload()

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._matches(getattr(event, "dest_path", None)):
            self._watcher.reload()


class RevocationListWatcher:
    """Keeps ``options.crl`` in sync with the file at ``options.crl_path``.

    Only contents that parse as a PEM or DER CRL are ever installed;
    anything else leaves the previous buffer in place.  An event whose
    file holds the same bytes as the installed buffer is dropped without
    a notification, so one write reported as several OS events produces
    a single ``"https.crl"`` change.

    Parameters
    ----------
    options:
        The HTTPS bundle whose ``crl`` field this watcher owns.
    notifier:
        Receives ``"https.crl"`` after every successful swap.
    observer_factory:
        Callable returning a watchdog observer; defaults to the platform
        native :class:`~watchdog.observers.Observer`.

    """

    def __init__(
        self,
        options: HttpsServerOptions,
        notifier: ChangeNotifier,
        *,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        self._options = options
        self._notifier = notifier
        self._observer_factory = observer_factory
        self._observer: Any = None
        self._lock = threading.Lock()
        self._state = WatcherState.IDLE
        self._reload_count = 0
        self.path = options.crl_path.resolve() if options.crl_path else None
        self.handler = _CrlEventHandler(self)

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def reload_count(self) -> int:
        """Number of reloads that swapped in a new buffer."""
        return self._reload_count

    def arm(self) -> None:
        """Start observing the CRL path; a no-op when none is configured."""
        if self.path is None:
            log.debug("No revocation list configured, watcher stays idle")
            return
        if self._state is not WatcherState.IDLE:
            return

        observer = self._observer_factory()
        observer.schedule(self.handler, str(self.path.parent), recursive=False)
        observer.start()
        self._observer = observer
        self._state = WatcherState.ARMED
        log.info("Watching revocation list %s", self.path)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop observing.  The current buffer stays installed."""
        observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout)
        self._state = WatcherState.IDLE
        log.info("Stopped watching revocation list %s", self.path)

    def reload(self) -> bool:
        """Re-read the CRL and swap it in.

        Returns ``True`` when a new buffer was installed and the change
        was announced, ``False`` when the previous buffer was kept.
        """
        if self.path is None:
            return False

        with self._lock:
            previous_state = self._state
            self._state = WatcherState.RELOADING
            try:
                data = read_revocation_list(self.path)
            except (OSError, ValueError) as exc:
                reason = getattr(exc, "strerror", None) or str(exc)
                log.warning(
                    "%s; keeping the previous revocation list",
                    ReloadReadError(str(self.path), reason),
                )
                return False
            finally:
                self._state = previous_state

            if data == self._options.crl:
                log.debug("Revocation list %s unchanged, ignoring event", self.path)
                return False

            self._options.crl = data
            self._reload_count += 1

        log.info("Reloaded revocation list %s (%d bytes)", self.path, len(data))
        self._notifier.emit(CRL_CHANGED)
        return True
