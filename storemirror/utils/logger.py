# storemirror/utils/logger.py
import logging
import os

LEVELS = {"ERROR": 40, "WARN": 30, "INFO": 20, "DEBUG": 10, "NONE": 100}
LOG_LEVEL = LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), 20)

_logger = logging.getLogger("storemirror")


def set_level(name: str):
    global LOG_LEVEL
    LOG_LEVEL = LEVELS.get((name or "INFO").upper(), 20)


def _fmt(msg: str, ctx: dict) -> str:
    if not ctx:
        return msg
    pairs = " ".join(f"{k}={v}" for k, v in ctx.items() if v is not None)
    return f"{msg} {pairs}" if pairs else msg


def log(level: str, msg: str, **ctx):
    if LEVELS[level] >= LOG_LEVEL:
        _logger.log(LEVELS[level], _fmt(msg, ctx))


def debug(msg, **ctx): log("DEBUG", msg, **ctx)
def info(msg, **ctx):  log("INFO", msg, **ctx)
def warn(msg, **ctx):  log("WARN", msg, **ctx)
def error(msg, **ctx): log("ERROR", msg, **ctx)
