# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/cli/argument_parser.py
from __future__ import annotations

import argparse
import io
import sys
from typing import Any, Dict, Optional, Sequence, Tuple

from ..config.config_loader import Config
from ..core.logger import Log, c
from ..core.utils import U

EPILOG = """\
examples:
  libvirt2kvm source rhel6                                  # local libvirt
  libvirt2kvm source -ic 'vpx://root@vcenter/Datacenter/esxi1?no_verify=1' win2k8
  libvirt2kvm source -ic xen+ssh://root@xen.example.com rhel5 --json
  libvirt2kvm alloc /var/tmp/disk.img 10G
  libvirt2kvm sparse /var/tmp/thin.img 1T
  libvirt2kvm --config site.yaml shell

sizes: 10G, 512M, 100k, 2048s (512-byte sectors); a bare number is KiB.
"""


class HelpFormatter(argparse.RawDescriptionHelpFormatter, argparse.ArgumentDefaultsHelpFormatter):
    pass


def _add_global_flags(p: argparse.ArgumentParser) -> None:
    g = p.add_argument_group("global")
    g.add_argument("--config", action="append", default=[], help="YAML/JSON config file or directory (repeatable).")
    g.add_argument("-v", "--verbose", action="count", default=0, help="More output (-vv debug, -vvv trace).")
    g.add_argument("-q", "--quiet", action="count", default=0, help="Less output (-qq errors only).")
    g.add_argument("--log-file", dest="log_file", default=None, help="Also log to this file.")
    g.add_argument("--json-logs", dest="json_logs", action="store_true", help="Emit NDJSON logs.")
    g.add_argument("--dump-config", action="store_true", help="Print the merged config and exit.")
    g.add_argument(
        "--libguestfs-backend",
        dest="libguestfs_backend",
        default=None,
        help="Export LIBGUESTFS_BACKEND before creating handles (e.g. 'direct').",
    )
    g.add_argument(
        "--chunk-size",
        dest="alloc_chunk_size",
        type=int,
        default=io.DEFAULT_BUFFER_SIZE,
        help="Buffer size in bytes when 'alloc' has to write zeroes itself.",
    )


def _add_connect(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-ic",
        "--connect",
        dest="connect",
        default=None,
        help="libvirt connection URI (default: libvirt's default connection).",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="libvirt2kvm",
        allow_abbrev=False,
        description=c("libvirt2kvm: libvirt input selection + disk image allocation", "green", ["bold"]),
        formatter_class=HelpFormatter,
        epilog=EPILOG,
    )
    _add_global_flags(p)

    sub = p.add_subparsers(dest="cmd", metavar="COMMAND")
    sub.required = True

    sp = sub.add_parser("source", help="Read a guest's disks and metadata through libvirt.", formatter_class=HelpFormatter)
    _add_connect(sp)
    sp.add_argument("guest", nargs="?", default=None, help="libvirt domain name or UUID.")
    sp.add_argument("--json", dest="as_json", action="store_true", help="Print the source as JSON.")

    cp = sub.add_parser("classify", help="Show which input adapter a URI selects.", formatter_class=HelpFormatter)
    _add_connect(cp)

    ap = sub.add_parser("alloc", help="alloc FILE SIZE: create a preallocated image and add it.")
    ap.add_argument("image_args", nargs="*", metavar="FILE SIZE")

    spp = sub.add_parser("sparse", help="sparse FILE SIZE: create a sparse image and add it.")
    spp.add_argument("image_args", nargs="*", metavar="FILE SIZE")

    sub.add_parser("shell", help="Interactive alloc/sparse/add shell on one libguestfs handle.")

    return p


def _build_preparser() -> argparse.ArgumentParser:
    pre = argparse.ArgumentParser(add_help=False, allow_abbrev=False)
    pre.add_argument("--config", action="append", default=[])
    pre.add_argument("-v", "--verbose", action="count", default=0)
    pre.add_argument("-q", "--quiet", action="count", default=0)
    pre.add_argument("--log-file", dest="log_file", default=None)
    pre.add_argument("--json-logs", dest="json_logs", action="store_true")
    pre.add_argument("--dump-config", action="store_true")
    return pre


def _load_merged_config(logger: Any, cfgs: Sequence[str]) -> Dict[str, Any]:
    if not cfgs:
        return {}
    expanded = Config.expand_configs(logger, list(cfgs))
    return Config.load_many(logger, expanded)


def validate_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if args.cmd == "source" and not args.guest:
        parser.error("source: a guest name is required (positional or 'guest:' in config)")
    if args.alloc_chunk_size is not None and int(args.alloc_chunk_size) <= 0:
        parser.error("--chunk-size must be > 0")


def parse_args_with_config(
    argv: Optional[Sequence[str]] = None,
    logger: Any = None,
) -> Tuple[argparse.Namespace, Dict[str, Any], Any]:
    """
    Phase 0: parse only the flags needed to find config and set up logging
    Phase 1: load + merge config files
    Phase 2: apply config as parser defaults
    Phase 3: full parse (CLI wins)
    Phase 4: validate
    """
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)

    parser = build_parser()
    args0, _rest = _build_preparser().parse_known_args(argv)

    own_logger = logger is None
    if own_logger:
        logger = Log.setup(args0.verbose, args0.log_file, quiet=args0.quiet, json_logs=args0.json_logs)

    conf = _load_merged_config(logger, args0.config or [])

    if args0.dump_config:
        print(U.json_dump(conf))
        raise SystemExit(0)

    Config.apply_as_defaults(logger, parser, conf)

    args = parser.parse_args(argv)
    validate_args(parser, args)

    # Logging knobs that came from config: re-run setup once.
    pre_log = (args0.verbose, args0.quiet, args0.log_file, args0.json_logs)
    if own_logger and (args.verbose, args.quiet, args.log_file, args.json_logs) != pre_log:
        logger = Log.setup(int(args.verbose or 0), args.log_file, quiet=int(args.quiet or 0), json_logs=bool(args.json_logs))

    return args, conf, logger


__all__ = ["build_parser", "parse_args_with_config", "validate_args"]
