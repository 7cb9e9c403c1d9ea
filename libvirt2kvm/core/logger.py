# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/core/logger.py
"""
Project logging: a TRACE level below DEBUG, an emoji line format for
humans, NDJSON for machines, and the `Log` helpers every module calls.

Structured fields travel on the record as `ctx` and are rendered as
sorted key=value pairs after the message.
"""
from __future__ import annotations

import datetime as _dt
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

try:
    from termcolor import colored as _colored  # type: ignore
except Exception:  # pragma: no cover
    _colored = None

TRACE = 5
if not hasattr(logging, "TRACE"):
    logging.TRACE = TRACE  # type: ignore[attr-defined]
    logging.addLevelName(TRACE, "TRACE")


def _logger_trace(self: logging.Logger, msg: str, *args, **kwargs) -> None:
    if self.isEnabledFor(TRACE):
        self._log(TRACE, msg, args, **kwargs)


if not hasattr(logging.Logger, "trace"):
    logging.Logger.trace = _logger_trace  # type: ignore[attr-defined]

# levelname -> (emoji, termcolor color)
_LEVELS: Dict[str, Tuple[str, str]] = {
    "TRACE": ("🧬", "cyan"),
    "DEBUG": ("🔍", "blue"),
    "INFO": ("✅", "green"),
    "WARNING": ("⚠️", "yellow"),
    "ERROR": ("💥", "red"),
    "CRITICAL": ("🧨", "red"),
}

_LEVEL_WIDTH = 8
_CTX_VALUE_MAX = 240


def c(text: str, color: Optional[str] = None, attrs: Optional[List[str]] = None, *, enable: bool = True) -> str:
    """Colorize text when termcolor is installed and `enable` is set."""
    if not enable or _colored is None or not color:
        return text
    return _colored(text, color=color, attrs=attrs or [])


def _one_line(v: Any, limit: int = _CTX_VALUE_MAX) -> str:
    s = str(v).replace("\r", "\\r").replace("\n", "\\n")
    return s if len(s) <= limit else s[: limit - 1] + "…"


def _render_ctx(ctx: Optional[Mapping[str, Any]]) -> str:
    if not ctx:
        return ""
    return "".join(f" {k}={_one_line(ctx[k])}" for k in sorted(ctx, key=str))


def _stderr_can_encode_emoji() -> bool:
    enc = getattr(sys.stderr, "encoding", None) or "utf-8"
    try:
        "✅".encode(enc)
    except (LookupError, UnicodeEncodeError):
        return False
    return True


class EmojiFormatter(logging.Formatter):
    """
    `HH:MM:SS <emoji> LEVEL    message k=v ...` in local time.

    detailed=True (log files, -vvv) adds milliseconds plus a
    [pid module:line] tag; color applies only when stderr is a terminal.
    """

    def __init__(self, *, color: bool = True, detailed: bool = False, emoji: bool = True):
        super().__init__()
        self.color = color
        self.detailed = detailed
        self.emoji = emoji

    def _colorize(self) -> bool:
        if not self.color or _colored is None:
            return False
        isatty = getattr(sys.stderr, "isatty", None)
        return bool(isatty and isatty())

    def format(self, record: logging.LogRecord) -> str:
        when = _dt.datetime.fromtimestamp(record.created)
        stamp = when.strftime("%H:%M:%S.%f")[:-3] if self.detailed else when.strftime("%H:%M:%S")
        icon, color = _LEVELS.get(record.levelname, ("•", ""))
        if not self.emoji:
            icon = "·"
        colorize = self._colorize()

        level = c(record.levelname, color, enable=colorize)
        msg = record.getMessage()
        if record.levelno >= logging.WARNING:
            msg = c(msg, color, attrs=["bold"], enable=colorize)
        where = f" [pid={os.getpid()} {record.module}:{record.lineno}]" if self.detailed else ""

        out = f"{stamp} {icon} {level:<{_LEVEL_WIDTH}}{where} {msg}{_render_ctx(getattr(record, 'ctx', None))}"
        if record.exc_info:
            tb = "\n".join("  " + ln for ln in self.formatException(record.exc_info).splitlines())
            out += "\n" + c(tb, "red", enable=colorize)
        return out


class JsonFormatter(logging.Formatter):
    """One JSON object per line, UTC timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        when = _dt.datetime.fromtimestamp(record.created, tz=_dt.timezone.utc)
        obj: Dict[str, Any] = {
            "ts": when.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "pid": os.getpid(),
            "module": record.module,
            "lineno": record.lineno,
        }
        ctx = getattr(record, "ctx", None)
        if ctx:
            obj["ctx"] = {str(k): _one_line(v) for k, v in ctx.items()}
        if record.exc_info:
            obj["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else "Exception"
            obj["traceback"] = self.formatException(record.exc_info)
        return json.dumps(obj, ensure_ascii=False, default=str)


_warned: Set[str] = set()


def _extra(ctx: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    return {"ctx": ctx} if ctx else None


class Log:
    @staticmethod
    def _level_from_flags(verbose: int, quiet: int) -> int:
        """-q WARNING, -qq ERROR, -vv DEBUG, -vvv TRACE, else INFO. -q beats -v."""
        if quiet:
            return logging.ERROR if quiet >= 2 else logging.WARNING
        if verbose >= 3:
            return TRACE
        return logging.DEBUG if verbose == 2 else logging.INFO

    @staticmethod
    def step(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("➡️  %s", msg, extra=_extra(ctx))

    @staticmethod
    def ok(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.info("✅ %s", msg, extra=_extra(ctx))

    @staticmethod
    def warn(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.warning("⚠️  %s", msg, extra=_extra(ctx))

    @staticmethod
    def fail(logger: logging.Logger, msg: str, **ctx: Any) -> None:
        logger.error("💥 %s", msg, extra=_extra(ctx))

    @staticmethod
    def trace(logger: logging.Logger, msg: str, *args: Any, **ctx: Any) -> None:
        fn = getattr(logger, "trace", None)
        if callable(fn):
            fn(msg, *args, extra=_extra(ctx))
        else:
            # LoggerAdapter has no patched .trace
            logger.log(TRACE, msg, *args, extra=_extra(ctx))

    @staticmethod
    def warn_once(logger: logging.Logger, key: Union[str, Tuple[Any, ...]], msg: str, **ctx: Any) -> bool:
        """Warn the first time `key` is seen in this process; True if it logged."""
        k = key if isinstance(key, str) else "|".join(_one_line(x, 160) for x in key)
        if k in _warned:
            return False
        _warned.add(k)
        Log.warn(logger, msg, **ctx)
        return True

    @staticmethod
    def setup(
        verbose: int = 0,
        log_file: Optional[str] = None,
        *,
        quiet: int = 0,
        logger_name: str = "libvirt2kvm",
        json_logs: bool = False,
    ) -> logging.Logger:
        """
        (Re)configure the project logger: one stderr handler, plus a
        detailed uncolored file handler when `log_file` is given.
        """
        logger = logging.getLogger(logger_name)
        logger.propagate = False
        level = Log._level_from_flags(verbose, quiet)
        logger.setLevel(level)

        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()

        emoji = _stderr_can_encode_emoji()
        handlers: List[logging.Handler] = []

        sh = logging.StreamHandler(stream=sys.stderr)
        sh.setFormatter(JsonFormatter() if json_logs else EmojiFormatter(detailed=verbose >= 3, emoji=emoji))
        handlers.append(sh)

        if log_file:
            fp = Path(log_file).expanduser().resolve()
            fp.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(fp, encoding="utf-8")
            fh.setFormatter(JsonFormatter() if json_logs else EmojiFormatter(color=False, detailed=True, emoji=emoji))
            handlers.append(fh)

        for h in handlers:
            h.setLevel(level)
            logger.addHandler(h)

        logger.debug("Logger initialized (level=%s)", logging.getLevelName(level))
        Log.trace(logger, "TRACE enabled (verbose >= 3)")
        return logger


__all__ = ["EmojiFormatter", "JsonFormatter", "Log", "TRACE", "c"]
