# ewus/services/auth_service.py
import re
from typing import List

from ewus.commons.errors import BadCredentialsResponse, IncompleteSessionData
from ewus.commons.logger import logger
from ewus.commons.types import Credentials
from ewus.helpers.soap_transport import Transport, TransportFault
from ewus.parsers.models import AuthSessionDescriptor, CredentialEntry

LOGIN_TYPE_LEK = "LEK"  # lekarz (médico)
LOGIN_TYPE_SWD = "SWD"  # świadczeniodawca (centro de atención)
KNOWN_LOGIN_TYPES = (LOGIN_TYPE_LEK, LOGIN_TYPE_SWD)

IDNT_SWD = "idntSwd"
IDNT_LEK = "idntLek"

AUTH_RESPONSE_REGEXP = re.compile(r"^\[([0-9]{3})\] (.*)$", re.IGNORECASE | re.DOTALL)
LOGOUT_CONFIRMATION = "wylogowany"

SESSION_HEADER = "session"
AUTH_TOKEN_HEADER = "authToken"


def build_credentials(credentials: Credentials) -> List[CredentialEntry]:
    entries = [
        CredentialEntry("domain", credentials.domain),
        CredentialEntry("login", credentials.username),
    ]

    if credentials.provider_type is not None and credentials.provider_code is not None:
        entries.append(CredentialEntry("type", credentials.provider_type))
        if credentials.provider_type not in KNOWN_LOGIN_TYPES:
            # Cualquier tipo distinto de SWD se envía como idntLek
            logger.warning(
                f"Tipo de prestador desconocido '{credentials.provider_type}', se usa {IDNT_LEK}"
            )
        name = IDNT_SWD if credentials.provider_type == LOGIN_TYPE_SWD else IDNT_LEK
        entries.append(CredentialEntry(name, credentials.provider_code))

    return entries


class AuthSession:
    """Login/logout contra el servicio Auth de eWUŚ.

    No guarda estado: el descriptor devuelto por login() lo conserva el llamador
    y se pasa de vuelta a logout().
    """

    def __init__(self, transport: Transport):
        self.transport = transport

    def login(self, credentials: Credentials) -> AuthSessionDescriptor:
        reply = self.transport.call(
            "login", [build_credentials(credentials), credentials.password]
        )

        match = AUTH_RESPONSE_REGEXP.fullmatch(reply.value or "")
        if not match:
            raise BadCredentialsResponse("Respuesta inesperada del servicio Auth")
        response_code, response_message = match.group(1), match.group(2)

        session_id = reply.headers.get(SESSION_HEADER, {}).get("id")
        auth_token = reply.headers.get(AUTH_TOKEN_HEADER, {}).get("id")
        if session_id is None or auth_token is None:
            raise IncompleteSessionData("Faltan los valores de autenticación requeridos")

        logger.info(f"Login eWUŚ [{response_code}] {response_message}")
        return AuthSessionDescriptor(
            response_code=response_code,
            response_message=response_message,
            session_id=session_id,
            auth_token=auth_token,
        )

    def logout(self, descriptor: AuthSessionDescriptor) -> bool:
        try:
            reply = self.transport.call("logout", [], headers=descriptor.headers())
        except TransportFault as ex:
            logger.warning(f"Logout eWUŚ falló: {ex}")
            return False

        logged_out = (reply.value or "").lower() == LOGOUT_CONFIRMATION
        if not logged_out:
            logger.warning(f"Logout eWUŚ no confirmado: {reply.value!r}")
        return logged_out
