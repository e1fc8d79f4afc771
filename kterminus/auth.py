"""Authorised public keys for agent authentication."""

from __future__ import annotations

import base64
import binascii
import hashlib
import logging
import os
import struct
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from kterminus.errors import KtError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizedKey:
    """A key that may authenticate, identified by its fingerprint."""

    fingerprint: str
    comment: str | None = None


def key_fingerprint(key_blob: bytes) -> str:
    """SHA-256 fingerprint of a public key blob, as unpadded base64."""
    digest = hashlib.sha256(bytes(key_blob)).digest()
    return base64.b64encode(digest).decode("ascii").rstrip("=")


class _BlobReader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def string(self) -> bytes:
        if self._pos + 4 > len(self._data):
            raise ValueError("truncated key")
        (length,) = struct.unpack_from(">I", self._data, self._pos)
        start = self._pos + 4
        end = start + length
        if end > len(self._data):
            raise ValueError("truncated key")
        self._pos = end
        return self._data[start:end]


_ECDSA_CURVES = {
    b"ecdsa-sha2-nistp256": b"nistp256",
    b"ecdsa-sha2-nistp384": b"nistp384",
    b"ecdsa-sha2-nistp521": b"nistp521",
}


def _validate_blob(blob: bytes) -> None:
    reader = _BlobReader(blob)
    key_type = reader.string()
    if key_type == b"ssh-ed25519":
        if len(reader.string()) != 32:
            raise ValueError("invalid ed25519 key length")
    elif key_type == b"ssh-rsa":
        if not reader.string() or not reader.string():
            raise ValueError("invalid RSA key")
    elif key_type in _ECDSA_CURVES:
        if reader.string() != _ECDSA_CURVES[key_type] or not reader.string():
            raise ValueError("invalid ECDSA key")
    else:
        raise ValueError(f"unsupported key type: {key_type!r}")


def _parse_public_key_base64(text: str) -> bytes | None:
    """Decode and validate a base64 public key blob, or None if it is not one."""
    try:
        blob = base64.b64decode(text, validate=True)
        _validate_blob(blob)
    except (binascii.Error, ValueError):
        return None
    return blob


def _parse_openssh_line(line: str) -> bytes | None:
    parts = line.split()
    return _parse_public_key_base64(parts[1]) if len(parts) >= 2 else None


def _extract_comment(line: str) -> str | None:
    parts = line.split(" ", 2)
    return parts[2] if len(parts) >= 3 else None


def _expand_home(path: Path) -> Path:
    if path.parts and path.parts[0] == "~":
        try:
            home = Path.home()
        except RuntimeError:
            return path
        return home.joinpath(*path.parts[1:])
    return path


class AuthorizedKeys:
    """The set of public keys allowed to connect."""

    def __init__(self) -> None:
        self._fingerprints: set[str] = set()
        self._keys: list[AuthorizedKey] = []

    @classmethod
    def load_from_files(cls, paths: Iterable[str | os.PathLike[str]]) -> AuthorizedKeys:
        """Load every existing file in ``paths``; missing files are skipped."""
        store = cls()
        for raw in paths:
            path = _expand_home(Path(raw))
            if path.exists():
                store.load_from_file(path)
            else:
                log.warning("Authorized keys file not found: %s", path)
        return store

    def load_from_file(self, path: str | os.PathLike[str]) -> None:
        """Add the keys in an authorized_keys file; unparsable lines are skipped."""
        path = Path(path)
        log.info("Loading authorized keys from %s", path)
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise KtError(f"Failed to open {path}: {exc}") from exc

        count = 0
        for line_num, raw in enumerate(content.split(b"\n"), start=1):
            try:
                line = raw.decode("utf-8").strip()
            except UnicodeDecodeError as exc:
                raise KtError(f"Failed to read line {line_num} of {path}: {exc}") from exc
            if not line or line.startswith("#"):
                continue

            blob = _parse_public_key_base64(line) or _parse_openssh_line(line)
            if blob is None:
                log.warning("Failed to parse key on line %d of %s", line_num, path)
                continue

            fingerprint = key_fingerprint(blob)
            comment = _extract_comment(line)
            log.debug("Loaded key: %s (%s)", fingerprint, comment or "no comment")
            self._insert(AuthorizedKey(fingerprint, comment))
            count += 1

        log.info("Loaded %d authorized keys from %s", count, path)

    def _insert(self, key: AuthorizedKey) -> None:
        self._fingerprints.add(key.fingerprint)
        self._keys.append(key)

    def is_authorized(self, fingerprint: str) -> bool:
        """Whether a key with this fingerprint may connect."""
        return fingerprint in self._fingerprints

    def add_fingerprint(self, fingerprint: str) -> None:
        """Authorise a key by its fingerprint."""
        self._insert(AuthorizedKey(fingerprint))

    def add_key(self, key: Any, comment: str | None = None) -> None:
        """Authorise a key given as a blob or an object with ``asbytes()``."""
        blob = key.asbytes() if hasattr(key, "asbytes") else bytes(key)
        self._insert(AuthorizedKey(key_fingerprint(blob), comment))

    def __len__(self) -> int:
        return len(self._fingerprints)

    def keys(self) -> list[AuthorizedKey]:
        """Every key added, in order, duplicates included."""
        return list(self._keys)