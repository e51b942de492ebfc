# ewus/services/responses_service.py
import json
import os
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ewus.commons.logger import logger
from ewus.commons.types import PathsCfg
from ewus.parsers.status_cwu import parse_status_response


def generate_archive_filename(
    source: Optional[str], kind: str = "status", extension: str = "json"
) -> str:
    """
    Genera nombre de archivo para archive, con timestamp y origen.
    Ej: 20250821-170605-123456_status_cwu_12345.json
    """
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S-%f")  # Para orden natural
    if source:
        base_name = os.path.splitext(os.path.basename(source))[0]
        source_str = re.sub(r"[^a-zA-Z0-9_\-]", "_", base_name)
    else:
        source_str = "manual"
    return f"{ts}_{kind}_{source_str}.{extension}"


class ResponsesService:
    """Convierte respuestas checkCWU guardadas (XML) en JSON de archivo."""

    def __init__(self, paths: PathsCfg):
        self.paths = paths
        for folder in (paths.inbox, paths.archive, paths.error):
            Path(folder).mkdir(parents=True, exist_ok=True)

    def process_text(self, xml_text: str, src: Optional[str] = None) -> Optional[Path]:
        result = parse_status_response(xml_text)
        if not result.ok:
            err_name = Path(src).name if src else "status_cwu.err.xml"
            errp = Path(self.paths.error) / err_name
            if src and Path(src).exists():
                shutil.move(src, errp)
            else:
                errp.write_text(xml_text, encoding="utf-8")
            logger.error(f"[{result.error_kind.value}] {err_name}: {result.error}")
            return None

        out_json = Path(self.paths.archive) / generate_archive_filename(src)
        out_json.write_text(
            json.dumps(result.record.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8"
        )
        logger.info(f"Respuesta procesada y archivada: {out_json}")

        # mueve el XML procesado a archive/xml/
        if src and Path(src).exists():
            dst_dir = Path(self.paths.archive) / "xml"
            dst_dir.mkdir(parents=True, exist_ok=True)
            shutil.move(src, dst_dir / Path(src).name)
        return out_json

    def process_backlog(self, glob_pat: str = "*.xml") -> int:
        inbox = Path(self.paths.inbox)
        files = sorted(inbox.glob(glob_pat))
        if not files:
            return 0
        logger.info(f"Backlog detectado: {len(files)} archivo(s) en {inbox}")
        archived = 0
        for f in files:
            # Un archivo ilegible no detiene el backlog completo
            try:
                text = f.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as ex:
                logger.error(f"No se pudo leer {f}: {ex}")
                continue
            try:
                if self.process_text(text, str(f)) is not None:
                    archived += 1
            except OSError:
                logger.exception(f"Error procesando {f}")
        return archived
