"""Logging setup shared by the Streamlit host and scripts."""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once; level defaults to $PDF_CHAT_LOG_LEVEL or INFO."""
    level_name = (level or os.environ.get("PDF_CHAT_LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    # aiohttp access noise is not useful at INFO
    logging.getLogger("aiohttp").setLevel(max(numeric_level, logging.WARNING))
