"""
Data models for records fetched from the remote authority.

The remote service speaks Portuguese field names (codigo, artista, titulo,
chave, tipo, ...). These models translate them once, at the boundary, so
the rest of the application only sees local names.

Design Decisions:
    - All dataclasses are frozen; records are ephemeral snapshots
    - from_api_response() raises MalformedResponseError on missing
      required fields instead of producing half-filled objects
    - Numeric fields tolerate strings and floats from the wire

Usage:
    entry = CatalogEntry.from_api_response(row)
    key = RemoteKeyRecord.from_api_response(row)
"""

from dataclasses import dataclass
from typing import Any

from kiosk_cache.activation.models import ActivationKind
from kiosk_cache.core.exceptions import MalformedResponseError


_ACTIVE_STATUSES = ("ativa", "ativo", "active")


def _require(data: dict[str, Any], field: str, kind: str) -> Any:
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MalformedResponseError(
            f"{kind} missing required field '{field}'",
            details={"field": field, "record": data}
        )
    return value


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def _optional_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class CatalogEntry:
    """
    One track of the remote catalog.

    Attributes:
        id: Remote identifier (stringified).
        code: Track code, the join key with the local index (e.g. "01009").
        artist: Artist name ("" if absent).
        title: Track title ("" if absent).
        asset_url: Direct download URL of the media file.
        file_name: Original file name, if provided.
        size: Size in bytes, if provided.
        duration: Duration in seconds, if provided.
        owner_id: Owner of the entry, if provided.
    """
    id: str
    code: str
    artist: str
    title: str
    asset_url: str
    file_name: str | None = None
    size: int | None = None
    duration: int | None = None
    owner_id: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "CatalogEntry":
        """
        Build from one row of GET /rest/v1/musicas.

        Raises:
            MalformedResponseError: If id, codigo or arquivo is missing,
                                    or data is not an object.
        """
        if not isinstance(data, dict):
            raise MalformedResponseError(
                "Catalog entry is not an object",
                details={"record": data}
            )

        return cls(
            id=str(_require(data, "id", "Catalog entry")),
            code=str(_require(data, "codigo", "Catalog entry")).strip(),
            artist=_optional_str(data.get("artista")) or "",
            title=_optional_str(data.get("titulo")) or "",
            asset_url=str(_require(data, "arquivo", "Catalog entry")).strip(),
            file_name=_optional_str(data.get("nome_arquivo")),
            size=_optional_int(data.get("tamanho")),
            duration=_optional_int(data.get("duracao")),
            owner_id=_optional_str(data.get("user_id")),
        )


@dataclass(frozen=True)
class RemoteKeyRecord:
    """
    One activation key as known by the remote authority.

    Timestamps are kept as raw text here; the reconciler parses them with
    parse_remote_timestamp() because the remote format varies.

    Attributes:
        id: Remote identifier, used to patch last-used.
        key: The activation key.
        kind: SUBSCRIPTION or MACHINE_BOUND.
        status: Raw status text ("ativa" when usable).
        expires_at: Raw expiry timestamp (subscription).
        started_at: Raw start timestamp (machine-bound).
        time_limit_hours: Usage budget in hours (machine-bound).
        owner_id: Owner of the key, if any.
        last_used_at: Raw last-used timestamp, if any.
    """
    id: str
    key: str
    kind: ActivationKind
    status: str
    expires_at: str | None = None
    started_at: str | None = None
    time_limit_hours: float | None = None
    owner_id: str | None = None
    last_used_at: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status.strip().lower() in _ACTIVE_STATUSES

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteKeyRecord":
        """
        Build from one row of GET /rest/v1/chaves_ativacao.

        Raises:
            MalformedResponseError: If required fields are missing or
                                    'tipo' is not a known kind.
        """
        if not isinstance(data, dict):
            raise MalformedResponseError(
                "Activation key record is not an object",
                details={"record": data}
            )

        raw_kind = _require(data, "tipo", "Activation key record")
        kind = ActivationKind.from_remote(str(raw_kind))
        if kind is None:
            raise MalformedResponseError(
                f"Unknown activation kind: {raw_kind!r}",
                details={"field": "tipo", "value": raw_kind}
            )

        return cls(
            id=str(_require(data, "id", "Activation key record")),
            key=str(_require(data, "chave", "Activation key record")),
            kind=kind,
            status=str(data.get("status") or ""),
            expires_at=_optional_str(data.get("data_expiracao")),
            started_at=_optional_str(data.get("data_inicio")),
            time_limit_hours=_optional_float(data.get("limite_tempo")),
            owner_id=_optional_str(data.get("user_id")),
            last_used_at=_optional_str(data.get("ultimo_uso")),
        )
