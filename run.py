import json
import os
from pathlib import Path

import typer

from ewus.commons.config import DEFAULT_SETTINGS, load_settings
from ewus.commons.errors import EwusError
from ewus.commons.logger import setup_logging
from ewus.commons.types import Credentials
from ewus.helpers.soap_transport import SoapTransport, TransportFault
from ewus.parsers.models import AuthSessionDescriptor
from ewus.parsers.status_cwu import parse_status_response
from ewus.services.auth_service import AuthSession
from ewus.services.responses_service import ResponsesService

app = typer.Typer(add_completion=False, help="eWUŚ Integrator")


def _bootstrap(config: str):
    cfg = load_settings(config)
    logger = setup_logging(cfg.paths.logs_root, os.getenv("LOG_LEVEL", "INFO"))
    return cfg, logger


def _transport(cfg) -> SoapTransport:
    return SoapTransport(
        cfg.ewus.auth_url,
        timeout=cfg.ewus.timeout_sec,
        retry_attempts=cfg.retry.attempts,
        retry_backoff_sec=cfg.retry.backoff_sec,
    )


@app.command()
def parse(file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Respuesta checkCWU")):
    """Convierte una respuesta checkCWU guardada en JSON."""
    result = parse_status_response(file.read_bytes())
    if not result.ok:
        typer.echo(f"[{result.error_kind.value}] {result.error}", err=True)
        raise typer.Exit(code=1)
    typer.echo(json.dumps(result.record.to_dict(), ensure_ascii=False, indent=2))


@app.command()
def process_inbox(
    glob: str = typer.Option("*.xml", help="Patrón de archivos en inbox"),
    config: str = typer.Option(DEFAULT_SETTINGS, help="Ruta de settings.yaml"),
):
    """Procesa todas las respuestas pendientes del inbox."""
    cfg, logger = _bootstrap(config)
    logger.info("Iniciando lectura de respuestas pendientes por procesar")
    svc = ResponsesService(cfg.paths)
    archived = svc.process_backlog(glob)
    logger.info(f"Respuestas archivadas: {archived}")


@app.command()
def login(config: str = typer.Option(DEFAULT_SETTINGS, help="Ruta de settings.yaml")):
    """Inicia sesión en eWUŚ; la contraseña se lee de EWUS_PASSWORD."""
    cfg, logger = _bootstrap(config)
    password = os.getenv("EWUS_PASSWORD")
    if not password:
        logger.error("Falta la variable de entorno EWUS_PASSWORD")
        raise typer.Exit(code=2)

    credentials = Credentials(
        domain=cfg.ewus.domain,
        username=cfg.ewus.username,
        password=password,
        provider_type=cfg.ewus.provider_type,
        provider_code=cfg.ewus.provider_code,
    )
    with _transport(cfg) as transport:
        try:
            session = AuthSession(transport).login(credentials)
        except EwusError as ex:
            logger.error(f"[{ex.kind.value}] {ex}")
            raise typer.Exit(code=1)
        except TransportFault as ex:
            logger.error(f"Fallo de transporte en login: {ex}")
            raise typer.Exit(code=1)
    typer.echo(
        json.dumps(
            {
                "response_code": session.response_code,
                "response_message": session.response_message,
                "session_id": session.session_id,
                "auth_token": session.auth_token,
            },
            ensure_ascii=False,
        )
    )


@app.command()
def logout(
    session_id: str = typer.Option(..., help="Identificador de sesión"),
    auth_token: str = typer.Option(..., help="Token de autenticación"),
    config: str = typer.Option(DEFAULT_SETTINGS, help="Ruta de settings.yaml"),
):
    """Cierra la sesión indicada."""
    cfg, logger = _bootstrap(config)
    descriptor = AuthSessionDescriptor(
        response_code="", response_message="", session_id=session_id, auth_token=auth_token
    )
    with _transport(cfg) as transport:
        ok = AuthSession(transport).logout(descriptor)
    if not ok:
        raise typer.Exit(code=1)
    logger.info("Sesión cerrada")


if __name__ == "__main__":
    app()
