"""
Authenticated cookie codecs.

A ``SecureCookie`` turns a JSON-serializable value into a URL-safe token
signed with HMAC-SHA256 and, when a block key is configured, encrypted with
Fernet. A ``CodecPipeline`` holds an ordered list of codecs so keys can be
rotated: the first codec encodes, every codec is tried on decode.

Token layout (before the outer unpadded base64): ``timestamp|payload|mac`` where the
MAC covers ``name|timestamp|payload``.
"""

import base64
import binascii
import hashlib
import hmac
import json
import logging
import time
from typing import Any, List, Optional, Protocol, Sequence, runtime_checkable

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from sqlstore.core.config import DEFAULT_MAX_AGE
from sqlstore.core.exceptions import CodecError, DecodeError, EncodeError

logger = logging.getLogger(__name__)

DEFAULT_MAX_LENGTH = 4096

_BLOCK_KEY_INFO = b"sqlstore session block key"


@runtime_checkable
class Codec(Protocol):
    """Anything that can encode and decode named values."""

    def encode(self, name: str, value: Any) -> str: ...

    def decode(self, name: str, token: str) -> Any: ...


@runtime_checkable
class SupportsLimits(Protocol):
    """Codecs whose token age and length can be limited."""

    def set_max_age(self, age: int) -> None: ...

    def set_max_length(self, length: int) -> None: ...


def _create_cipher(block_key: bytes) -> Fernet:
    """Create a Fernet cipher from arbitrary-length block key material."""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=None,
        info=_BLOCK_KEY_INFO,
    )
    key = base64.urlsafe_b64encode(hkdf.derive(block_key))
    return Fernet(key)


class SecureCookie:
    """Signs, optionally encrypts, and serializes values into tokens."""

    def __init__(self, hash_key: bytes, block_key: Optional[bytes] = None):
        if not hash_key:
            raise ValueError("hash key is not set")
        self._hash_key = hash_key
        self._cipher = _create_cipher(block_key) if block_key else None
        self._max_age = DEFAULT_MAX_AGE
        self._min_age = 0
        self._max_length = DEFAULT_MAX_LENGTH

    @property
    def encrypted(self) -> bool:
        return self._cipher is not None

    def set_max_age(self, age: int) -> None:
        """Tokens older than ``age`` seconds are rejected. 0 disables the check."""
        self._max_age = age

    def set_min_age(self, age: int) -> None:
        self._min_age = age

    def set_max_length(self, length: int) -> None:
        """Limit the token length in bytes. 0 disables the check."""
        self._max_length = length

    def _mac(self, name: bytes, timestamp: bytes, payload: bytes) -> bytes:
        message = b"|".join([name, timestamp, payload])
        return hmac.new(self._hash_key, message, hashlib.sha256).digest()

    def encode(self, name: str, value: Any) -> str:
        """
        Encode ``value`` into a token bound to ``name``.

        Raises:
            EncodeError: If serialization fails or the token is too long
        """
        try:
            payload = json.dumps(value, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise EncodeError(f"unable to serialize value: {e}") from e

        if self._cipher is not None:
            payload = self._cipher.encrypt(payload)

        payload = base64.urlsafe_b64encode(payload)
        timestamp = str(int(time.time())).encode("ascii")
        mac = self._mac(name.encode("utf-8"), timestamp, payload)
        # Padding is stripped so the token is a valid unquoted cookie value
        token = base64.urlsafe_b64encode(b"|".join([timestamp, payload, mac])).decode("ascii").rstrip("=")

        if self._max_length and len(token) > self._max_length:
            raise EncodeError(
                f"the value is too long: {len(token)} bytes exceeds {self._max_length}"
            )
        return token

    def decode(self, name: str, token: str) -> Any:
        """
        Verify ``token`` against ``name`` and return the decoded value.

        Raises:
            DecodeError: If the token is malformed, too long, expired, fails
                authentication or cannot be deserialized
        """
        if self._max_length and len(token) > self._max_length:
            raise DecodeError("the value is too long")

        try:
            padded = token + "=" * (-len(token) % 4)
            raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        except (binascii.Error, ValueError) as e:
            raise DecodeError("the value is not valid base64") from e

        parts = raw.split(b"|", 2)
        if len(parts) != 3:
            raise DecodeError("the value is not valid")
        timestamp, payload, mac = parts

        expected = self._mac(name.encode("utf-8"), timestamp, payload)
        if not hmac.compare_digest(mac, expected):
            raise DecodeError("the value is not valid")

        try:
            issued = int(timestamp)
        except ValueError as e:
            raise DecodeError("invalid timestamp") from e

        now = int(time.time())
        if self._min_age and issued > now - self._min_age:
            raise DecodeError("timestamp is too new")
        if self._max_age and issued < now - self._max_age:
            raise DecodeError("expired timestamp")

        try:
            payload = base64.urlsafe_b64decode(payload)
        except (binascii.Error, ValueError) as e:
            raise DecodeError("the payload is not valid base64") from e

        if self._cipher is not None:
            try:
                # TTL is enforced by the signed timestamp above
                payload = self._cipher.decrypt(payload)
            except InvalidToken as e:
                raise DecodeError("the value could not be decrypted") from e

        try:
            return json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"unable to deserialize value: {e}") from e


class CodecPipeline:
    """Ordered codecs supporting key rotation."""

    def __init__(self, codecs: Sequence[Codec]):
        self.codecs: List[Codec] = list(codecs)

    @classmethod
    def from_pairs(cls, *key_pairs: Optional[bytes]) -> "CodecPipeline":
        """
        Build a pipeline from ``hash_key, block_key, hash_key, block_key, ...``.

        A missing or empty block key leaves that pair signed but unencrypted.
        """
        codecs = []
        for index in range(0, len(key_pairs), 2):
            hash_key = key_pairs[index]
            block_key = key_pairs[index + 1] if index + 1 < len(key_pairs) else None
            codecs.append(SecureCookie(hash_key, block_key or None))
        return cls(codecs)

    def encode(self, name: str, value: Any) -> str:
        """Encode with the current (first) codec."""
        if not self.codecs:
            raise EncodeError("no codecs were provided")
        return self.codecs[0].encode(name, value)

    def decode(self, name: str, token: str) -> Any:
        """Try each codec in order, returning the first successful decode."""
        if not self.codecs:
            raise DecodeError("no codecs were provided")

        errors: List[CodecError] = []
        for index, codec in enumerate(self.codecs):
            try:
                value = codec.decode(name, token)
            except CodecError as e:
                errors.append(e)
                continue
            if index:
                logger.debug(f"Decoded {name!r} with rotated key #{index}")
            return value

        if len(errors) == 1:
            raise DecodeError(str(errors[0]), errors) from errors[0]
        details = "; ".join(str(e) for e in errors)
        raise DecodeError(f"no codec could decode the value: {details}", errors)

    def set_max_age(self, age: int) -> None:
        for codec in self.codecs:
            if isinstance(codec, SupportsLimits):
                codec.set_max_age(age)

    def set_max_length(self, length: int) -> None:
        for codec in self.codecs:
            if isinstance(codec, SupportsLimits):
                codec.set_max_length(length)
