from __future__ import annotations
from contextlib import closing
from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO, Callable, Iterator, Optional, Tuple, Union
import codecs
import logging
import os
import threading

logger = logging.getLogger(__name__)

PROBE_RETRY = "retry"
PROBE_SURFACE = "surface"
PROBE_POLICIES = (PROBE_RETRY, PROBE_SURFACE)

DEFAULT_BACKOFF_SECONDS = 1.0


# -------------------------
# Model
# -------------------------
@dataclass(frozen=True)
class Line:
    content: str


@dataclass(frozen=True)
class RotationDetected:
    path: str


Event = Union[Line, RotationDetected]
# An OSError instance takes the place of an event when a read or probe fails.
Item = Union[Event, OSError]


class Action(Enum):
    CONTINUE = "continue"
    STOP = "stop"
    SKIP_TO_END = "skip_to_end"


Identity = Tuple[int, int]


def _identity(handle: BinaryIO) -> Identity:
    st = os.fstat(handle.fileno())
    return st.st_dev, st.st_ino


def check_encoding(encoding: str) -> None:
    """
    Lines are split on the newline byte, so only ASCII-compatible
    encodings (utf-8, latin-1, ...) can be decoded line by line.
    """
    try:
        codecs.lookup(encoding)
    except LookupError:
        raise ValueError(f"Unknown encoding: {encoding}")
    if "\n".encode(encoding) != b"\n":
        raise ValueError(f"Encoding {encoding} is not ASCII-compatible; lines cannot be split on newline bytes")


def _strip_newline(raw: bytes) -> bytes:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    return raw


# -------------------------
# Watcher
# -------------------------
class Watcher:
    """
    Tail a growing file and survive rotation.

    Tailing starts at the end of the file as it was at registration. Each
    appended line is produced as a `Line`; when the path starts pointing at a
    different physical file (device + inode), a `RotationDetected` is produced
    and tailing continues from the start of the new file.

    Two equivalent shapes:
      - push: `watcher.watch(callback)`, callback returns an `Action`
      - pull: `for item in watcher: ...` with `skip_to_end()` / `stop()`
    """

    def __init__(
        self,
        path: str,
        handle: BinaryIO,
        *,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        probe_errors: str = PROBE_RETRY,
        encoding: str = "utf-8",
    ) -> None:
        if probe_errors not in PROBE_POLICIES:
            raise ValueError(
                f"Unknown probe error policy: {probe_errors!r} (expected one of {', '.join(PROBE_POLICIES)})"
            )
        if backoff_seconds <= 0:
            raise ValueError(f"backoff_seconds must be positive, got {backoff_seconds}")
        check_encoding(encoding)
        self.path = path
        self.handle = handle
        self.identity = _identity(handle)
        self.cursor = handle.seek(0, os.SEEK_END)
        self.finished = False
        self.backoff_seconds = backoff_seconds
        self.probe_errors = probe_errors
        self.encoding = encoding
        self._stop_event = threading.Event()

    @classmethod
    def register(
        cls,
        path: Union[str, "os.PathLike[str]"],
        *,
        backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
        probe_errors: str = PROBE_RETRY,
        encoding: str = "utf-8",
    ) -> "Watcher":
        """
        Open `path` and position the cursor at its current end.
        Any OSError from the initial open propagates to the caller.
        """
        path = os.fspath(path)
        handle = open(path, "rb")
        try:
            watcher = cls(
                path,
                handle,
                backoff_seconds=backoff_seconds,
                probe_errors=probe_errors,
                encoding=encoding,
            )
        except BaseException:
            handle.close()
            raise
        logger.debug("registered %s at offset %d (identity=%s)", path, watcher.cursor, watcher.identity)
        return watcher

    # ---- consumer control ----
    def apply(self, action: Optional[Action]) -> None:
        if action is None or action is Action.CONTINUE:
            return
        if action is Action.STOP:
            self.finished = True
        elif action is Action.SKIP_TO_END:
            self.skip_to_end()
        else:
            raise ValueError(f"Unknown action: {action!r}")

    def skip_to_end(self) -> None:
        """Discard unread bytes of the current file."""
        self.cursor = self.handle.seek(0, os.SEEK_END)

    def stop(self) -> None:
        """
        Finish the loop. Safe to call from another thread: a pending backoff
        sleep wakes up and the loop exits before the next read.
        """
        self.finished = True
        self._stop_event.set()

    def close(self) -> None:
        self.handle.close()

    def __enter__(self) -> "Watcher":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ---- read/poll loop ----
    def watch(self, callback: Callable[[Item], Optional[Action]]) -> None:
        with closing(iter(self)) as items:
            for item in items:
                self.apply(callback(item))

    def __iter__(self) -> Iterator[Item]:
        try:
            while not self.finished:
                try:
                    raw = self.handle.readline()
                except OSError as e:
                    yield e
                    continue

                if raw:
                    self.cursor += len(raw)
                    # The buffered reader may have read ahead; keep it on the consumed offset.
                    self.handle.seek(self.cursor)
                    yield Line(_strip_newline(raw).decode(self.encoding, errors="replace"))
                    continue

                try:
                    rotated = self._probe_rotation()
                except OSError as e:
                    yield e
                    continue
                if rotated:
                    yield RotationDetected(self.path)
                self.handle.seek(self.cursor)
        finally:
            self.close()

    def _sleep(self) -> None:
        self._stop_event.wait(self.backoff_seconds)

    def _open(self) -> BinaryIO:
        return open(self.path, "rb")

    def _probe_rotation(self) -> bool:
        """
        Called when the current file is exhausted.
        Returns True after adopting a new file at `path`, False when the path
        still refers to the file already open.
        """
        while not self._stop_event.is_set():
            try:
                candidate = self._open()
            except FileNotFoundError:
                logger.debug("%s does not exist, waiting for it to reappear", self.path)
                self._sleep()
                continue
            except OSError as e:
                if self.probe_errors == PROBE_SURFACE:
                    self._sleep()
                    raise
                logger.warning("reopening %s failed, retrying: %s", self.path, e)
                self._sleep()
                continue

            try:
                identity = _identity(candidate)
            except OSError as e:
                candidate.close()
                logger.debug("stat of reopened %s failed, retrying: %s", self.path, e)
                self._sleep()
                continue

            if identity != self.identity:
                logger.info("rotation detected on %s (%s -> %s)", self.path, self.identity, identity)
                self.handle.close()
                self.handle = candidate
                self.identity = identity
                self.cursor = 0
                return True

            candidate.close()
            self._sleep()
            return False
        return False
