# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/core/utils.py
from __future__ import annotations

import json
import logging
import shlex
import subprocess
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .exceptions import Fatal


class U:
    @staticmethod
    def which(prog: str) -> Optional[str]:
        from shutil import which as _which
        return _which(prog)

    @staticmethod
    def json_dump(obj: Any) -> str:
        if is_dataclass(obj) and not isinstance(obj, type):
            obj = asdict(obj)
        try:
            return json.dumps(obj, indent=2, sort_keys=True, default=str)
        except Exception:
            return repr(obj)

    @staticmethod
    def human_bytes(n: Optional[int]) -> str:
        if n is None:
            return "unknown"
        x = float(n)
        for unit in ["B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB"]:
            if x < 1024 or unit == "EiB":
                return f"{x:.2f} {unit}" if unit != "B" else f"{int(x)} {unit}"
            x /= 1024
        return f"{n} B"

    @staticmethod
    def _pretty_cmd(cmd: List[str]) -> str:
        return " ".join(shlex.quote(x) for x in cmd)

    @staticmethod
    def run_cmd(
        logger: logging.Logger,
        cmd: List[str],
        *,
        check: bool = True,
        capture: bool = False,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[int] = None,
        cwd: Optional[Union[str, Path]] = None,
        fatal: bool = False,
    ) -> subprocess.CompletedProcess:
        """
        Run a command.

        - capture=True uses subprocess.run(capture_output=True, text=True)
        - fatal=True wraps failures into Fatal (otherwise re-raises subprocess exceptions)
        """
        pretty = U._pretty_cmd(cmd)
        logger.debug("Running: %s", pretty)

        try:
            return subprocess.run(
                cmd,
                check=check,
                capture_output=capture,
                text=True,
                env=env,
                timeout=timeout,
                cwd=str(cwd) if cwd is not None else None,
            )

        except subprocess.CalledProcessError as e:
            stdout = (e.stdout or e.output or "").strip()
            stderr = (e.stderr or "").strip()
            if stdout or stderr:
                logger.error(
                    "Command failed: %s%s%s",
                    pretty,
                    f"\nstdout:\n{stdout}" if stdout else "",
                    f"\nstderr:\n{stderr}" if stderr else "",
                )
            else:
                logger.error("Command failed: %s (no output)", pretty)

            if fatal:
                detail = f": {stderr.splitlines()[-1]}" if stderr else ""
                raise Fatal(e.returncode or 1, f"Command failed: {pretty}{detail}") from e
            raise

        except subprocess.TimeoutExpired as e:
            logger.error("Command timed out: %s (timeout=%ss)", pretty, timeout)
            if fatal:
                raise Fatal(124, f"Command timed out: {pretty}") from e
            raise

        except OSError as e:
            logger.error("Command error: %s (%s)", pretty, e)
            if fatal:
                raise Fatal(127, f"Command error: {pretty}: {e}") from e
            raise
