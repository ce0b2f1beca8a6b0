"""
Derivation of the provider identity from a legacy external ID.

Legacy identities recorded their origin in an ad-hoc external_id field.
Each known encoding is one ClassifierRule; rules are tried in order and the
first match wins.
"""
from dataclasses import dataclass
from typing import Callable, List, Optional

from .identity import make_provider_identity

USSO_OPENID_PREFIX = "https://login.ubuntu.com/+id"
OPENID_CONNECT_PREFIX = "openid-connect:"
USSO_MACAROON_PREFIX = "usso-openid:"


@dataclass(frozen=True)
class ClassifierRule:
    """Maps one legacy external ID encoding to a provider."""
    name: str
    matches: Callable[[str], bool]
    provider: str
    # Called with (username, external_id), returns the provider subject.
    subject: Callable[[str, str], str]


def _has_prefix(prefix: str) -> Callable[[str], bool]:
    return lambda external_id: external_id.startswith(prefix)


def _strip_prefix(prefix: str) -> Callable[[str, str], str]:
    return lambda username, external_id: external_id[len(prefix):]


RULES: List[ClassifierRule] = [
    # Created directly in the identity manager.
    ClassifierRule(
        name="idm",
        matches=lambda external_id: external_id == "",
        provider="idm",
        subject=lambda username, external_id: username,
    ),
    ClassifierRule(
        name="usso_openid",
        matches=_has_prefix(USSO_OPENID_PREFIX),
        provider="usso",
        subject=lambda username, external_id: external_id,
    ),
    # The only OpenID Connect provider ever used was Azure.
    ClassifierRule(
        name="openid_connect",
        matches=_has_prefix(OPENID_CONNECT_PREFIX),
        provider="azure",
        subject=_strip_prefix(OPENID_CONNECT_PREFIX),
    ),
    ClassifierRule(
        name="usso_macaroon",
        matches=_has_prefix(USSO_MACAROON_PREFIX),
        provider="usso_macaroon",
        subject=_strip_prefix(USSO_MACAROON_PREFIX),
    ),
]


def provider_identity(username: str, external_id: str, rules: Optional[List[ClassifierRule]] = None) -> str:
    """
    Return the provider identity for a legacy user, or "" when the
    external ID matches no known encoding.
    """
    for rule in RULES if rules is None else rules:
        if rule.matches(external_id):
            return make_provider_identity(rule.provider, rule.subject(username, external_id))
    return ""
