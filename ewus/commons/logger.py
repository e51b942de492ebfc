import sys
from datetime import datetime
from pathlib import Path

from loguru import logger


def setup_logging(root: str, level: str = "INFO", filename: str = "ewus.log"):
    """Log diario en <root>/YYYY/MM/DD/<filename> y consola por stderr.

    La consola va a stderr: stdout queda libre para el JSON que imprime la CLI.
    """
    logdir = Path(root) / datetime.now().strftime("%Y/%m/%d")
    logdir.mkdir(parents=True, exist_ok=True)
    logger.remove()
    logger.add(
        str(logdir / filename),
        rotation="00:00",
        retention="14 days",
        level=level,
        enqueue=True,
        backtrace=True,
        # diagnose volcaría variables locales (contraseñas, tokens) en las trazas
        diagnose=False,
    )
    logger.add(sys.stderr, level=level)
    return logger
