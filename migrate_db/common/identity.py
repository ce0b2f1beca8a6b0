"""
Identity types: the legacy document read from the old store and the
canonical identity handed to the destination store.
"""
import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Dict, List, Any, Optional

from .errors import MalformedDocument

# Width of a public key in bytes.
KEY_LEN = 32

# "Never" as understood by the destination store.
ZERO_TIME = datetime(1, 1, 1, tzinfo=UTC)


def make_provider_identity(provider: str, subject: str) -> str:
    """Build the provider-qualified identity reference for subject."""
    return f"{provider}:{subject}"


@dataclass(frozen=True)
class PublicKey:
    """A fixed-width public key."""
    key: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "PublicKey":
        """
        Copy data into a KEY_LEN buffer. Longer input is truncated and
        shorter input is zero-padded; this never fails.
        """
        buf = bytearray(KEY_LEN)
        n = min(len(data), KEY_LEN)
        buf[:n] = data[:n]
        return cls(bytes(buf))

    def to_base64(self) -> str:
        return base64.b64encode(self.key).decode("ascii")


def _decode_bytes(value: Any, field_name: str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, dict):
        # mongoexport extended JSON, either {"$binary": {"base64": ...}}
        # or the older {"$binary": "...", "$type": "00"}
        if "$binary" in value:
            binary = value["$binary"]
            value = binary.get("base64") if isinstance(binary, dict) else binary
        elif "key" in value:
            return _decode_bytes(value["key"], field_name)
    if isinstance(value, str):
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedDocument(f"{field_name}: invalid base64: {e}")
    raise MalformedDocument(f"{field_name}: cannot decode {type(value).__name__} as key bytes")


def _decode_time(value: Any, field_name: str) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, dict) and "$date" in value:
        value = value["$date"]
        try:
            if isinstance(value, dict) and "$numberLong" in value:
                value = int(value["$numberLong"])
            if isinstance(value, int):
                return datetime.fromtimestamp(value / 1000, UTC)
        except (ValueError, TypeError, OverflowError, OSError) as e:
            raise MalformedDocument(f"{field_name}: invalid $date: {e}")
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError as e:
            raise MalformedDocument(f"{field_name}: {e}")
    if not isinstance(value, datetime):
        raise MalformedDocument(f"{field_name}: expected a timestamp, got {type(value).__name__}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def _string_list(value: Any, field_name: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise MalformedDocument(f"{field_name}: expected a list of strings")
    return list(value)


@dataclass(frozen=True)
class LegacyIdentityDocument:
    """An identity as stored in the legacy identities collection."""
    username: str
    external_id: str = ""
    full_name: str = ""
    email: str = ""
    groups: List[str] = field(default_factory=list)
    last_login: Optional[datetime] = None
    last_discharge: Optional[datetime] = None
    public_keys: List[bytes] = field(default_factory=list)
    owner: str = ""
    ssh_keys: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "LegacyIdentityDocument":
        """
        Decode a raw legacy document using the legacy field names.

        Raises MalformedDocument when a field has the wrong type or cannot
        be decoded.
        """
        username = raw.get("username")
        if not isinstance(username, str) or not username:
            raise MalformedDocument("missing username")
        try:
            strings = {}
            for key in ("external_id", "fullname", "email", "owner"):
                value = raw.get(key)
                if value is None:
                    value = ""
                if not isinstance(value, str):
                    raise MalformedDocument(f"{key}: expected a string")
                strings[key] = value
            public_keys = raw.get("publickeys")
            if public_keys is None:
                public_keys = []
            if not isinstance(public_keys, list):
                raise MalformedDocument("publickeys: expected a list")
            return cls(
                username=username,
                external_id=strings["external_id"],
                full_name=strings["fullname"],
                email=strings["email"],
                groups=_string_list(raw.get("groups"), "groups"),
                last_login=_decode_time(raw.get("lastlogin"), "lastlogin"),
                last_discharge=_decode_time(raw.get("lastdischarge"), "lastdischarge"),
                public_keys=[_decode_bytes(k, "publickeys") for k in public_keys],
                owner=strings["owner"],
                ssh_keys=_string_list(raw.get("sshkeys"), "sshkeys"),
            )
        except MalformedDocument as e:
            raise MalformedDocument(e.reason, username) from None
        except (ValueError, TypeError, OverflowError) as e:
            raise MalformedDocument(str(e), username) from e


@dataclass
class CanonicalIdentity:
    """An identity in the destination store's model."""
    username: str
    provider_id: str
    name: str = ""
    email: str = ""
    groups: List[str] = field(default_factory=list)
    last_login: datetime = ZERO_TIME
    last_discharge: datetime = ZERO_TIME
    public_keys: List[PublicKey] = field(default_factory=list)
    provider_info: Optional[Dict[str, List[str]]] = None
    extra_info: Optional[Dict[str, List[str]]] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable form used for the output files."""
        return {
            "username": self.username,
            "provider_id": self.provider_id,
            "name": self.name,
            "email": self.email,
            "groups": list(self.groups),
            "last_login": self.last_login.isoformat(),
            "last_discharge": self.last_discharge.isoformat(),
            "public_keys": [k.to_base64() for k in self.public_keys],
            "provider_info": self.provider_info,
            "extra_info": self.extra_info,
        }
