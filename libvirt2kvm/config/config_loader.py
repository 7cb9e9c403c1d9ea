# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/config/config_loader.py
"""
YAML/JSON configuration files.

Files are merged in order (later wins, nested mappings merged key by key)
and then applied as argparse defaults, so anything given on the command
line still overrides the files.
"""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List, Sequence

import yaml

from ..core.exceptions import Fatal

CONFIG_SUFFIXES = (".yaml", ".yml", ".json")


def _deep_merge(base: Dict[str, Any], extra: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in extra.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _iter_parsers(parser: argparse.ArgumentParser) -> Iterator[argparse.ArgumentParser]:
    yield parser
    for action in parser._actions:
        if isinstance(action, argparse._SubParsersAction):
            for sub in action.choices.values():
                yield from _iter_parsers(sub)


class Config:
    @staticmethod
    def expand_configs(logger: logging.Logger, paths: Sequence[str]) -> List[Path]:
        """Expand directories to their config files (sorted); keep files as given."""
        out: List[Path] = []
        for raw in paths:
            p = Path(raw).expanduser()
            if p.is_dir():
                found = sorted(x for x in p.iterdir() if x.is_file() and x.suffix.lower() in CONFIG_SUFFIXES)
                if not found:
                    logger.warning("Config directory has no %s files: %s", "/".join(CONFIG_SUFFIXES), p)
                out.extend(found)
            elif p.is_file():
                out.append(p)
            else:
                raise Fatal(code=2, msg=f"Config file not found: {p}", context={"config": str(p)})
        return out

    @staticmethod
    def load_one(logger: logging.Logger, path: Path) -> Dict[str, Any]:
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise Fatal(code=2, msg=f"Cannot read config {path}: {e}", cause=e) from e

        try:
            if path.suffix.lower() == ".json":
                data = json.loads(text) if text.strip() else {}
            else:
                data = yaml.safe_load(text)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise Fatal(code=2, msg=f"Invalid config {path}: {e}", cause=e, context={"config": str(path)}) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise Fatal(
                code=2,
                msg=f"Config {path} must contain a mapping at top level (got {type(data).__name__})",
                context={"config": str(path)},
            )
        logger.debug("Loaded config %s (%d keys)", path, len(data))
        return data

    @staticmethod
    def load_many(logger: logging.Logger, paths: Sequence[Path]) -> Dict[str, Any]:
        merged: Dict[str, Any] = {}
        for p in paths:
            merged = _deep_merge(merged, Config.load_one(logger, Path(p)))
        return merged

    @staticmethod
    def apply_as_defaults(logger: logging.Logger, parser: argparse.ArgumentParser, conf: Dict[str, Any]) -> None:
        """
        Push config values into every parser (subcommands included) that
        owns a matching dest. Unknown keys are reported, not fatal.
        """
        if not conf:
            return
        used = set()
        for p in _iter_parsers(parser):
            dests = {a.dest for a in p._actions}
            hits = {k: v for k, v in conf.items() if k in dests}
            if hits:
                p.set_defaults(**hits)
                used.update(hits)
        unknown = sorted(set(conf) - used)
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(unknown))


__all__ = ["CONFIG_SUFFIXES", "Config"]
