"""Helpers for turning the configured authorization block into credentials.

Two credential flavours are supported and resolved once at start-up:

``OAuthCredentials``
    User credentials authorised through the OAuth consent flow.  The
    configuration carries the client id/secret and a JSON ``#data`` blob
    holding the access and refresh tokens.

``ServiceAccountCredentials``
    A service account key placed in ``parameters.#serviceAccountJson``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Union

from google.oauth2 import credentials as oauth2_credentials
from google.oauth2 import service_account

from sheets_writer.errors import UserError

__all__ = [
    "CredentialsFileInvalidError",
    "OAuthCredentials",
    "REQUIRED_FIELDS",
    "SCOPES",
    "ServiceAccountCredentials",
    "TOKEN_URI",
    "WriterCredentials",
    "build_google_credentials",
    "load_service_account_data",
    "resolve_credentials",
]

SCOPES: Iterable[str] = (
    "https://www.googleapis.com/auth/drive",
    "https://www.googleapis.com/auth/spreadsheets",
)
TOKEN_URI = "https://oauth2.googleapis.com/token"


class CredentialsFileInvalidError(UserError):
    """Raised when a service account key is missing required data."""


REQUIRED_FIELDS: Iterable[str] = (
    "type",
    "project_id",
    "private_key_id",
    "private_key",
    "client_email",
    "client_id",
    "token_uri",
)


@dataclass(frozen=True)
class OAuthCredentials:
    client_id: str
    client_secret: str
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class ServiceAccountCredentials:
    info: Mapping[str, Any]

    @property
    def client_email(self) -> str:
        return str(self.info.get("client_email", ""))


WriterCredentials = Union[OAuthCredentials, ServiceAccountCredentials]


def _normalise_private_key(key: str) -> str:
    key = key.replace("\r\n", "\n").replace("\r", "\n")
    key = key.replace("\\n", "\n")
    if not key.endswith("\n"):
        key += "\n"
    return key


def _load_json(raw: Union[str, bytes, Mapping[str, Any]]) -> Mapping[str, Any]:
    if isinstance(raw, Mapping):
        return raw
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8-sig")
    payload_text = str(raw).lstrip("\ufeff").strip()
    if not payload_text:
        raise CredentialsFileInvalidError("Service account JSON is empty.")

    try:
        payload = json.loads(payload_text)
    except json.JSONDecodeError as exc:
        raise CredentialsFileInvalidError(f"Service account JSON parse error: {exc.msg}") from exc
    if not isinstance(payload, Mapping):
        raise CredentialsFileInvalidError("Service account JSON must be an object.")
    return payload


def _validate_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = dict(payload)
    missing: list[str] = []

    for field in REQUIRED_FIELDS:
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            missing.append(field)

    if data.get("type") != "service_account":
        missing.append("type")

    if missing:
        ordered = ", ".join(sorted(dict.fromkeys(missing)))
        raise CredentialsFileInvalidError(f"Service account JSON missing fields: {ordered}")

    data["private_key"] = _normalise_private_key(str(data["private_key"]))
    return data


def load_service_account_data(raw: Union[str, bytes, Mapping[str, Any]]) -> Dict[str, Any]:
    """Return validated service account data from a JSON string or mapping."""

    return _validate_payload(_load_json(raw))


def _oauth_from_authorization(authorization: Mapping[str, Any]) -> OAuthCredentials:
    try:
        block = authorization["oauth_api"]["credentials"]
    except (KeyError, TypeError):
        raise UserError("Missing authorization data")

    raw_data = block.get("#data")
    try:
        token_data = json.loads(raw_data) if isinstance(raw_data, str) else dict(raw_data or {})
    except json.JSONDecodeError as exc:
        raise UserError(f"Authorization data is not valid JSON: {exc.msg}") from exc

    access_token = token_data.get("access_token")
    refresh_token = token_data.get("refresh_token")
    if not refresh_token and not access_token:
        raise UserError("Authorization data does not contain access or refresh token")

    return OAuthCredentials(
        client_id=str(block.get("appKey") or ""),
        client_secret=str(block.get("#appSecret") or ""),
        access_token=str(access_token or ""),
        refresh_token=str(refresh_token or ""),
    )


def resolve_credentials(
    authorization: Mapping[str, Any],
    service_account_json: Any = None,
) -> WriterCredentials:
    """Pick the credential flavour configured for this run."""

    if service_account_json:
        return ServiceAccountCredentials(info=load_service_account_data(service_account_json))
    if not authorization:
        raise UserError("Missing authorization data")
    return _oauth_from_authorization(authorization)


def build_google_credentials(creds: WriterCredentials):
    """Return a google-auth credentials object for ``creds``."""

    if isinstance(creds, ServiceAccountCredentials):
        try:
            return service_account.Credentials.from_service_account_info(dict(creds.info), scopes=list(SCOPES))
        except ValueError as exc:
            raise CredentialsFileInvalidError(str(exc) or "Service account JSON missing fields: private_key") from exc
    if isinstance(creds, OAuthCredentials):
        return oauth2_credentials.Credentials(
            token=creds.access_token or None,
            refresh_token=creds.refresh_token or None,
            token_uri=TOKEN_URI,
            client_id=creds.client_id or None,
            client_secret=creds.client_secret or None,
            scopes=list(SCOPES),
        )
    raise TypeError(f"Unsupported credentials: {creds!r}")
