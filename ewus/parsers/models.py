# ===============================
# File: ewus/parsers/models.py
# ===============================
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Optional, Tuple

from ewus.commons.errors import ErrorKind, EwusError

# nombre de cabecera -> {subcampo -> valor}, p.ej. {"session": {"id": "abc"}}
HeaderMap = Dict[str, Dict[str, str]]


@dataclass(frozen=True)
class StatusRecord:
    query_timestamp: datetime
    responder_system_name: str
    responder_system_version: str
    provider_id: str
    provider_branch_id: str
    provider_operator_id: str
    patient_insurance_status: str
    patient_national_id: str
    patient_first_name: str
    patient_last_name: str
    signature_value: str
    signature_canonicalization_algorithm: str
    signature_method_algorithm: str
    signature_digest_algorithm: str
    signature_digest_value: str
    signature_reference_transforms: Tuple[str, ...] = ()
    patient_expiry_date: Optional[date] = None

    def to_dict(self) -> Dict:
        return {
            "query_timestamp": self.query_timestamp.isoformat(),
            "responder_system": {
                "name": self.responder_system_name,
                "version": self.responder_system_version,
            },
            "provider": {
                "id": self.provider_id,
                "branch_id": self.provider_branch_id,
                "operator_id": self.provider_operator_id,
            },
            "patient": {
                "national_id": self.patient_national_id,
                "first_name": self.patient_first_name,
                "last_name": self.patient_last_name,
                "insurance_status": self.patient_insurance_status,
                "expiry_date": (
                    self.patient_expiry_date.isoformat() if self.patient_expiry_date else None
                ),
            },
            "signature": {
                "value": self.signature_value,
                "canonicalization_algorithm": self.signature_canonicalization_algorithm,
                "method_algorithm": self.signature_method_algorithm,
                "reference_transforms": list(self.signature_reference_transforms),
                "digest_algorithm": self.signature_digest_algorithm,
                "digest_value": self.signature_digest_value,
            },
        }


@dataclass(frozen=True)
class ExtractionResult:
    """Resultado etiquetado del extractor: o un StatusRecord o un error con nombre."""

    record: Optional[StatusRecord] = None
    error: Optional[EwusError] = None

    @classmethod
    def success(cls, record: StatusRecord) -> "ExtractionResult":
        return cls(record=record)

    @classmethod
    def failure(cls, error: EwusError) -> "ExtractionResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> StatusRecord:
        if self.error is not None:
            raise self.error
        return self.record


@dataclass(frozen=True)
class AuthSessionDescriptor:
    response_code: str
    response_message: str
    session_id: str
    auth_token: str

    def headers(self) -> HeaderMap:
        return {
            "session": {"id": self.session_id},
            "authToken": {"id": self.auth_token},
        }


@dataclass(frozen=True)
class CredentialEntry:
    name: str
    value: str


@dataclass(frozen=True)
class TransportReply:
    value: str
    headers: HeaderMap = field(default_factory=dict)
