"""
Transporte SOAP hacia el servicio Auth de eWUŚ.

El núcleo (AuthSession) solo conoce el protocolo `Transport`; SoapTransport es
la implementación real sobre httpx. Los reintentos por fallos de red viven
aquí y no en el núcleo.
"""

import time
from typing import Any, Callable, Dict, Optional, Protocol, Sequence

import httpx
from lxml import etree

from ewus.commons.logger import logger
from ewus.parsers.models import CredentialEntry, HeaderMap, TransportReply

SOAPENV_URL = "http://schemas.xmlsoap.org/soap/envelope/"
COMMON_URL = "http://xml.kamsoft.pl/ws/common"
LOGIN_TYPES_URL = "http://xml.kamsoft.pl/ws/kaas/login_types"

NSMAP = {"soapenv": SOAPENV_URL, "com": COMMON_URL, "log": LOGIN_TYPES_URL}


class TransportFault(Exception):
    """Fallo a nivel de transporte: SOAP Fault, HTTP, red o respuesta ilegible."""


class Transport(Protocol):
    def call(
        self, operation: str, args: Sequence[Any], headers: Optional[HeaderMap] = None
    ) -> TransportReply: ...


def _qn(ns: str, tag: str) -> etree.QName:
    return etree.QName(ns, tag)


def _login_body(body: etree._Element, credentials: Sequence[CredentialEntry], password: str):
    login = etree.SubElement(body, _qn(LOGIN_TYPES_URL, "login"))
    creds = etree.SubElement(login, _qn(LOGIN_TYPES_URL, "credentials"))
    for entry in credentials:
        item = etree.SubElement(creds, _qn(LOGIN_TYPES_URL, "item"))
        etree.SubElement(item, _qn(LOGIN_TYPES_URL, "name")).text = entry.name
        value = etree.SubElement(item, _qn(LOGIN_TYPES_URL, "value"))
        etree.SubElement(value, _qn(LOGIN_TYPES_URL, "stringValue")).text = entry.value
    etree.SubElement(login, _qn(LOGIN_TYPES_URL, "password")).text = password


def _logout_body(body: etree._Element):
    etree.SubElement(body, _qn(LOGIN_TYPES_URL, "logout"))


OPERATIONS: Dict[str, Callable[..., None]] = {
    "login": _login_body,
    "logout": _logout_body,
}


def build_envelope(operation: str, args: Sequence[Any], headers: Optional[HeaderMap] = None) -> bytes:
    if operation not in OPERATIONS:
        raise ValueError(f"Operación SOAP no soportada: {operation}")

    envelope = etree.Element(_qn(SOAPENV_URL, "Envelope"), nsmap=NSMAP)
    header = etree.SubElement(envelope, _qn(SOAPENV_URL, "Header"))
    # <com:session id="..."/>, <com:authToken id="..."/>
    for name, fields in (headers or {}).items():
        el = etree.SubElement(header, _qn(COMMON_URL, name))
        for key, value in fields.items():
            el.set(key, value)
    body = etree.SubElement(envelope, _qn(SOAPENV_URL, "Body"))
    OPERATIONS[operation](body, *args)
    return etree.tostring(envelope, xml_declaration=True, encoding="UTF-8")


def _elements(node: etree._Element):
    # Omite comentarios e instrucciones de procesamiento
    return [c for c in node if isinstance(c.tag, str)]


def _read_headers(root: etree._Element) -> HeaderMap:
    headers: HeaderMap = {}
    header = root.find(f"{{{SOAPENV_URL}}}Header")
    if header is None:
        return headers
    for el in _elements(header):
        fields = {etree.QName(k).localname: v for k, v in el.attrib.items()}
        for child in _elements(el):
            fields[etree.QName(child).localname] = child.text or ""
        headers[etree.QName(el).localname] = fields
    return headers


def parse_reply(content: bytes) -> TransportReply:
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        root = etree.fromstring(content, parser)
    except etree.XMLSyntaxError as ex:
        raise TransportFault(f"Respuesta SOAP ilegible: {ex}") from ex

    fault = root.find(f".//{{{SOAPENV_URL}}}Fault")
    if fault is not None:
        raise TransportFault(fault.findtext("faultstring") or "SOAP Fault")

    body = root.find(f"{{{SOAPENV_URL}}}Body")
    children = _elements(body) if body is not None else []
    if not children:
        raise TransportFault("Respuesta SOAP sin contenido en Body")

    # loginReturn / logoutReturn: el valor es el texto del primer hijo
    response = children[0]
    inner = _elements(response)
    value_el = inner[0] if inner else response
    return TransportReply(value=value_el.text or "", headers=_read_headers(root))


class SoapTransport:
    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        retry_attempts: int = 1,
        retry_backoff_sec: float = 0.0,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.retry_attempts = max(1, retry_attempts)
        self.retry_backoff_sec = retry_backoff_sec
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout))

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        if not self._client.is_closed:
            self._client.close()

    def _post(self, operation: str, envelope: bytes) -> httpx.Response:
        attempts = self.retry_attempts
        for i in range(1, attempts + 1):
            try:
                return self._client.post(
                    self.url,
                    content=envelope,
                    headers={
                        "Content-Type": "text/xml; charset=utf-8",
                        "Accept": "text/xml",
                        "SOAPAction": "",
                    },
                )
            except httpx.TransportError as ex:
                logger.warning(f"Intento {i}/{attempts} de {operation} falló: {ex}")
                if i < attempts:
                    time.sleep(self.retry_backoff_sec)
                else:
                    raise TransportFault(f"Error de red en {operation}: {ex}") from ex
            except httpx.HTTPError as ex:
                # Errores no de red (p. ej. decodificación): no se reintenta
                raise TransportFault(f"Error HTTP en {operation}: {ex}") from ex

    def call(
        self, operation: str, args: Sequence[Any], headers: Optional[HeaderMap] = None
    ) -> TransportReply:
        envelope = build_envelope(operation, args, headers)
        logger.debug(f"SOAP {operation} -> {self.url} ({len(envelope)} bytes)")
        response = self._post(operation, envelope)
        # Los SOAP Fault suelen venir con HTTP 500: se prioriza el Fault
        if response.is_error and b"Fault" not in response.content:
            raise TransportFault(f"HTTP {response.status_code} en {operation}")
        return parse_reply(response.content)
