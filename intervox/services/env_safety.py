from __future__ import annotations

import os
from pathlib import Path

from loguru import logger


def sanitize_ssl_keylogfile() -> None:
    """Unset SSLKEYLOGFILE when it points to an unusable path.

    httpx and the OpenAI SDK both build an SSL context on client creation and
    crash there if the key log path is not writable.
    """
    keylog_path = os.getenv("SSLKEYLOGFILE", "").strip()
    if not keylog_path:
        return

    path = Path(keylog_path)
    try:
        if not path.parent.exists():
            raise FileNotFoundError(path.parent)
        # Append mode so an existing key log is not truncated.
        with open(path, "a", encoding="utf-8"):
            pass
    except OSError as exc:
        logger.warning(f"Ignoring unusable SSLKEYLOGFILE={keylog_path}: {exc}")
        os.environ.pop("SSLKEYLOGFILE", None)
