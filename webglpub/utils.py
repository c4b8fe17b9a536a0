import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional

DEFAULT_GAME_NAME = "Untitled"


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter('%(levelname)s %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if debug_enabled() else logging.INFO)
    return logger


def debug_enabled() -> bool:
    return os.getenv("WEBGLPUB_DEBUG", "0") in ("1", "true", "TRUE")


def redacted_headers(headers: Dict[str, Any]) -> Dict[str, Any]:
    redacted = {}
    for k, v in headers.items():
        if k.lower() in ('authorization', 'cookie'):
            redacted[k] = '[REDACTED]'
        else:
            redacted[k] = v
    return redacted


def redact_payload(payload: Any) -> Any:
    if not isinstance(payload, (dict, list)):
        return payload
    secret_keys = (
        "access_token",
        "token",
        "authorization",
        "cookie",
    )
    if isinstance(payload, list):
        return [redact_payload(item) for item in payload]
    redacted: Dict[str, Any] = {}
    for key, value in payload.items():
        key_l = str(key).lower()
        if any(k in key_l for k in secret_keys):
            redacted[key] = "***"
        else:
            redacted[key] = redact_payload(value)
    return redacted


def append_log_line(path: str, line: str) -> None:
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    safe_line = line.rstrip("\n")
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(f"[{timestamp}] {safe_line}\n")


def truncate_text(text: Optional[str], limit: int = 2000) -> str:
    if text is None:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...[truncated {len(text) - limit} chars]"


def format_bytes(num: int) -> str:
    """GB, MB or KB with two decimals, plain bytes below 1 KB."""
    gb = num / (1024.0 * 1024.0 * 1024.0)
    mb = num / (1024.0 * 1024.0)
    kb = num / 1024.0
    if mb >= 1000:
        return f"{gb:.2f} GB"
    if kb >= 1000:
        return f"{mb:.2f} MB"
    if kb >= 1:
        return f"{kb:.2f} KB"
    return f"{num} B"


def filtered_title(title: Optional[str]) -> str:
    if not title or not title.strip():
        return DEFAULT_GAME_NAME
    return title
