"""
Conversion of a single legacy identity document into a canonical identity.
"""
from pathlib import Path
from typing import Dict, Any, Optional

from .classifier import provider_identity
from .errors import MalformedDocument, UnrecognizedExternalID, UnrecognizedOwner
from .identity import CanonicalIdentity, LegacyIdentityDocument, PublicKey, make_provider_identity
from .schema_validator import validate_legacy_identity

ADMIN_OWNER = "admin@idm"

# Owners that may be carried over. Anything else is rejected.
KNOWN_OWNERS = {
    ADMIN_OWNER: [make_provider_identity("idm", ADMIN_OWNER), ADMIN_OWNER],
}


def convert(doc: LegacyIdentityDocument) -> CanonicalIdentity:
    """
    Convert a legacy identity document.

    Args:
        doc: Decoded legacy document

    Returns:
        The canonical identity

    Raises:
        UnrecognizedExternalID: external_id matches no known encoding
        UnrecognizedOwner: owner is set to something other than admin@idm
    """
    provider_id = provider_identity(doc.username, doc.external_id)
    if not provider_id:
        raise UnrecognizedExternalID(doc.external_id)

    identity = CanonicalIdentity(
        username=doc.username,
        provider_id=provider_id,
        name=doc.full_name,
        email=doc.email,
        groups=list(doc.groups),
    )
    if doc.last_login is not None:
        identity.last_login = doc.last_login
    if doc.last_discharge is not None:
        identity.last_discharge = doc.last_discharge

    identity.public_keys = [PublicKey.from_bytes(k) for k in doc.public_keys]

    if doc.owner:
        if doc.owner not in KNOWN_OWNERS:
            raise UnrecognizedOwner(doc.username, doc.owner)
        identity.provider_info = {"owner": list(KNOWN_OWNERS[doc.owner])}

    if doc.ssh_keys:
        identity.extra_info = {"sshkeys": list(doc.ssh_keys)}

    return identity


def convert_raw(raw: Dict[str, Any], schema_path: Optional[Path] = None) -> CanonicalIdentity:
    """
    Decode a raw document read from the legacy cursor and convert it.

    When schema_path is given the raw document is first checked against
    the legacy identity schema.
    """
    if not isinstance(raw, dict):
        raise MalformedDocument(f"expected an object, got {type(raw).__name__}")
    # Lines the JSONL cursor could not decode.
    if "raw_line" in raw and "error" in raw:
        raise MalformedDocument(raw["error"])
    if schema_path is not None:
        is_valid, error_msg = validate_legacy_identity(raw, schema_path)
        if not is_valid:
            username = raw.get("username") if isinstance(raw.get("username"), str) else None
            raise MalformedDocument(error_msg, username)
    return convert(LegacyIdentityDocument.from_dict(raw))
