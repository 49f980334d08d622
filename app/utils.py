# app/utils.py
"""Shared utilities: logging setup and small numeric helpers."""
import os
import logging
from decimal import Decimal, ROUND_HALF_UP
from dotenv import load_dotenv

load_dotenv()

def get_logger(name=__name__):
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level, logging.INFO)
    )
    return logging.getLogger(name)

logger = get_logger("property-search")

def to_money(value) -> Decimal:
    """Quantize to cents; accepts int, float, str or Decimal."""
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

def env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))
