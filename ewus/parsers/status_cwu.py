"""
Extractor de la respuesta checkCWU (status_cwu_odp) de eWUŚ.

Convierte el sobre SOAP firmado en un StatusRecord. No valida la firma XML,
solo expone sus campos para que el llamador la verifique.
"""

import re
from datetime import date, datetime
from typing import Callable, List, Optional, Tuple, Union

from lxml import etree

from ewus.commons.errors import EwusError, InvalidFieldFormat, MalformedDocument, MissingField
from ewus.parsers.models import ExtractionResult, StatusRecord

NS2 = "ns2"
NS2_URL = "https://ewus.nfz.gov.pl/ws/broker/ewus/status_cwu/v3"
NS3 = "ns3"
NS3_URL = "http://xml.kamsoft.pl/ws/broker"
SOAPENV_URL = "http://schemas.xmlsoap.org/soap/envelope/"
DS_URL = "http://www.w3.org/2000/09/xmldsig#"

# El documento no siempre declara estos prefijos: se registran fijos
NAMESPACES = {"soapenv": SOAPENV_URL, NS2: NS2_URL, NS3: NS3_URL, "ds": DS_URL}

EXECUTE_SERVICE_RETURN = "/soapenv:Envelope/soapenv:Body/ns3:executeServiceReturn/"
STATUS_CWU_ODP = EXECUTE_SERVICE_RETURN + "ns3:payload/ns3:textload/ns2:status_cwu_odp"
SIGNATURE = STATUS_CWU_ODP + "/ds:Signature"
SIGNED_INFO = SIGNATURE + "/ds:SignedInfo"
REFERENCE = SIGNED_INFO + "/ds:Reference"

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"
CALENDAR_DATE_FORMAT = "%Y-%m-%d"

# Forma literal exigida antes de strptime: sin espacios, offset con ':', dos dígitos
TIMESTAMP_RE = re.compile(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{1,6}[+-]\d{2}:\d{2}", re.ASCII)
CALENDAR_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)

# (campo, ruta relativa a status_cwu_odp, requerido)
SCALAR_FIELDS: Tuple[Tuple[str, str, bool], ...] = (
    ("provider_id", "/ns2:swiad/ns2:id_swiad", True),
    ("provider_branch_id", "/ns2:swiad/ns2:id_ow", True),
    ("provider_operator_id", "/ns2:swiad/ns2:id_operatora", True),
    ("patient_expiry_date", "/ns2:pacjent/ns2:data_waznosci_potwierdzenia", False),
    ("patient_insurance_status", "/ns2:pacjent/ns2:status_ubezp", True),
    ("patient_national_id", "/ns2:numer_pesel", True),
    ("patient_first_name", "/ns2:pacjent/ns2:imie", True),
    ("patient_last_name", "/ns2:pacjent/ns2:nazwisko", True),
)


def parse_query_timestamp(raw: str) -> datetime:
    if not TIMESTAMP_RE.fullmatch(raw):
        raise ValueError(f"'{raw}' no tiene la forma YYYY-MM-DDThh:mm:ss.ffffff+hh:mm")
    return datetime.strptime(raw, TIMESTAMP_FORMAT)


def parse_calendar_date(raw: str) -> date:
    if not CALENDAR_DATE_RE.fullmatch(raw):
        raise ValueError(f"'{raw}' no tiene la forma YYYY-MM-DD")
    return datetime.strptime(raw, CALENDAR_DATE_FORMAT).date()


def _convert(field: str, raw: str, parser: Callable[[str], Union[date, datetime]]):
    try:
        return parser(raw)
    except ValueError as ex:
        raise InvalidFieldFormat(field, raw) from ex


def _load_document(xml: Union[str, bytes]) -> etree.XPathElementEvaluator:
    data = xml.encode("utf-8") if isinstance(xml, str) else xml
    if not data or not data.strip():
        raise MalformedDocument("Documento XML vacío")
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(data, parser)
    except etree.XMLSyntaxError as ex:
        raise MalformedDocument(f"XML mal formado: {ex}") from ex
    try:
        return etree.XPathElementEvaluator(root, namespaces=NAMESPACES)
    except (etree.XPathError, TypeError, ValueError) as ex:
        raise MalformedDocument(f"No se pudieron registrar los namespaces: {ex}") from ex


def _find(xpath: etree.XPathElementEvaluator, path: str) -> Optional[etree._Element]:
    nodes = xpath(path)
    # Si hay varias coincidencias manda la primera en orden de documento
    return nodes[0] if nodes else None


def _require(xpath: etree.XPathElementEvaluator, path: str, field: str) -> etree._Element:
    node = _find(xpath, path)
    if node is None:
        raise MissingField(field)
    return node


def _require_attr(node: etree._Element, name: str, field: str) -> str:
    value = node.get(name)
    if value is None:
        raise MissingField(field)
    return value


def _text(node: etree._Element) -> str:
    return node.text or ""


def _extract(xml: Union[str, bytes]) -> StatusRecord:
    xpath = _load_document(xml)

    raw_date = _text(_require(xpath, EXECUTE_SERVICE_RETURN + "ns3:date", "query_timestamp"))
    query_timestamp = _convert("query_timestamp", raw_date, parse_query_timestamp)

    system_nfz = _require(xpath, STATUS_CWU_ODP + "/ns2:system_nfz", "responder_system_name")
    system_name = _require_attr(system_nfz, "nazwa", "responder_system_name")
    system_version = _require_attr(system_nfz, "wersja", "responder_system_version")

    scalars = {}
    for field, path, required in SCALAR_FIELDS:
        node = _find(xpath, STATUS_CWU_ODP + path)
        if node is None:
            if required:
                raise MissingField(field)
            continue
        scalars[field] = _text(node)

    expiry_date = None
    if "patient_expiry_date" in scalars:
        expiry_date = _convert(
            "patient_expiry_date", scalars["patient_expiry_date"], parse_calendar_date
        )

    signature_value = _text(_require(xpath, SIGNATURE + "/ds:SignatureValue", "signature_value"))
    canonicalization = _require_attr(
        _require(
            xpath,
            SIGNED_INFO + "/ds:CanonicalizationMethod",
            "signature_canonicalization_algorithm",
        ),
        "Algorithm",
        "signature_canonicalization_algorithm",
    )
    signature_method = _require_attr(
        _require(xpath, SIGNED_INFO + "/ds:SignatureMethod", "signature_method_algorithm"),
        "Algorithm",
        "signature_method_algorithm",
    )

    # Orden de documento = cadena de transformaciones XML-DSig; puede venir vacía
    transforms: List[str] = [
        _require_attr(node, "Algorithm", "signature_reference_transforms")
        for node in xpath(REFERENCE + "/ds:Transforms/ds:Transform")
    ]

    digest_method = _require_attr(
        _require(xpath, REFERENCE + "/ds:DigestMethod", "signature_digest_algorithm"),
        "Algorithm",
        "signature_digest_algorithm",
    )
    digest_value = _text(_require(xpath, REFERENCE + "/ds:DigestValue", "signature_digest_value"))

    return StatusRecord(
        query_timestamp=query_timestamp,
        responder_system_name=system_name,
        responder_system_version=system_version,
        provider_id=scalars["provider_id"],
        provider_branch_id=scalars["provider_branch_id"],
        provider_operator_id=scalars["provider_operator_id"],
        patient_expiry_date=expiry_date,
        patient_insurance_status=scalars["patient_insurance_status"],
        patient_national_id=scalars["patient_national_id"],
        patient_first_name=scalars["patient_first_name"],
        patient_last_name=scalars["patient_last_name"],
        signature_value=signature_value,
        signature_canonicalization_algorithm=canonicalization,
        signature_method_algorithm=signature_method,
        signature_reference_transforms=tuple(transforms),
        signature_digest_algorithm=digest_method,
        signature_digest_value=digest_value,
    )


def parse_status_response(xml: Union[str, bytes]) -> ExtractionResult:
    """Devuelve ExtractionResult con el StatusRecord o con el error concreto."""
    try:
        return ExtractionResult.success(_extract(xml))
    except EwusError as err:
        return ExtractionResult.failure(err)
