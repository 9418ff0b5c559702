import logging
import os
import hashlib
import math
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
import json
from typing import Any, Optional, Union

from riderpay.core.config import settings

def mkdir_safe(path: str):
    Path(path).mkdir(parents=True, exist_ok=True)

def atomic_write_json(path: str, obj: Any):
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    tmp = p.with_suffix(".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(obj, f, indent=2, default=str, ensure_ascii=False)
    os.replace(str(tmp), str(p))

def setup_logging(name: str = "system", *, log_level: str = None):
    logger_name = f"{settings.APP_NAME}.{name}"
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger
    level = log_level or settings.LOG_LEVEL
    logger.setLevel(getattr(logging, level.upper()))
    mkdir_safe(settings.AUDIT_LOG_PATH)
    logfile = Path(settings.AUDIT_LOG_PATH) / f"{name}.log"
    handler = RotatingFileHandler(str(logfile), maxBytes=10_000_000, backupCount=5, encoding="utf-8")
    formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    if os.getenv("DEV", "").lower() in ("1","true","yes"):
        ch = logging.StreamHandler()
        ch.setFormatter(formatter)
        logger.addHandler(ch)
    logger.propagate = False
    return logger

def file_hash(path: Union[str, Path]) -> str:
    """MD5 of the file content, used to spot the same workbook uploaded twice."""
    with open(path, 'rb') as f:
        return hashlib.md5(f.read()).hexdigest()

def to_number(value: Any, default: float = 0.0) -> float:
    """Coerce spreadsheet/JSON cells to float; blanks and junk become ``default``."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        if isinstance(value, float) and math.isnan(value):
            return default
        return float(value)
    s = str(value).replace(",", "").strip()
    if not s:
        return default
    try:
        num = float(s)
    except ValueError:
        return default
    return default if math.isnan(num) or math.isinf(num) else num

def round_half_up(value: float) -> int:
    # matches the payout sheet rounding (x.5 goes up, also for negatives toward +inf)
    return int(math.floor(value + 0.5))

def format_amount(value: Optional[float]) -> str:
    """Grouped-thousands text; ``-`` for zero or missing values."""
    if not value:
        return "-"
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")

def format_negative(value: Optional[float]) -> str:
    if not value:
        return "-"
    return f"-{format_amount(value)}"

def sanitize_file_name(name: str) -> str:
    name = re.sub(r'[\\/:*?"<>|]+', "-", name.strip())
    return re.sub(r"\s+", "-", name)
