# SPDX-License-Identifier: LGPL-3.0-or-later
# libvirt2kvm/core/exceptions.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


def _safe_int(x: Any, default: int = 1) -> int:
    try:
        return int(x)
    except Exception:
        return default


def _clamp_exit_code(code: int) -> int:
    # Exit codes are 0..255.
    if code < 0:
        return 1
    if code > 255:
        return 255
    return code


def _one_line(s: str, limit: int = 600) -> str:
    s = (s or "").strip().replace("\r", " ").replace("\n", " ")
    s = " ".join(s.split())
    return s if len(s) <= limit else (s[: limit - 3] + "...")


_SECRET_KEY_PARTS = (
    "pass",
    "password",
    "secret",
    "token",
    "auth",
    "cookie",
    "session",
    "key",
)


def _is_secret_key(k: str) -> bool:
    ks = (k or "").lower()
    return any(p in ks for p in _SECRET_KEY_PARTS)


def _redacted(ctx: Dict[str, Any]) -> Dict[str, Any]:
    return {k: ("<redacted>" if _is_secret_key(str(k)) else v) for k, v in ctx.items()}


def _format_context_compact(ctx: Dict[str, Any]) -> str:
    safe = _redacted(ctx)
    return ", ".join(f"{k}={safe[k]!r}" for k in sorted(safe.keys()))


@dataclass(eq=False)
class Libvirt2KvmError(Exception):
    """
    Base project error. `code` becomes the exit status (clamped to 0..255),
    `msg` is kept on one line and `context` is shown, secrets redacted,
    when the CLI runs with -v.
    """
    code: int = 1
    msg: str = "error"
    cause: Optional[BaseException] = None
    context: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        self.code = _clamp_exit_code(_safe_int(self.code, default=1))
        self.msg = _one_line(self.msg) or self.__class__.__name__
        if self.context is None:
            self.context = {}
        super().__init__(self.msg)
        self.args = (self.msg,)

    def user_message(self, *, include_context: bool = False, include_cause: bool = False) -> str:
        """
        Human-friendly message for CLI output/logs.
        """
        parts = [self.msg or self.__class__.__name__]

        if include_context and self.context:
            parts.append(f"[{_one_line(_format_context_compact(self.context))}]")

        if include_cause and self.cause is not None:
            parts.append(f"(cause: {type(self.cause).__name__}: {_one_line(str(self.cause))})")

        return " ".join(parts)

    def __str__(self) -> str:
        return self.user_message(include_context=False, include_cause=False)


class Fatal(Libvirt2KvmError):
    """
    User-facing fatal error (exit code is honored by top-level main()).
    """
    pass


class UsageError(Fatal):
    """A command was invoked with the wrong number of arguments."""


class InvalidSizeSpec(Fatal):
    """A size string could not be parsed; context carries the original `spec`."""


class AlreadyLaunched(Fatal):
    """Drives can only be added while the libguestfs handle is in its config state."""


class ImageIOError(Fatal):
    """
    Creating, allocating or closing an image file failed.
    The OSError is kept in `cause`; context carries `path` and `op`.
    """


class RegistrationFailure(Fatal):
    """The image was created but could not be added as a drive."""


class InvalidConnectionUri(Fatal):
    """The -ic connection URI could not be parsed."""


class UnsupportedBackend(Fatal):
    """The active libguestfs backend cannot read this kind of remote source."""


class MissingSshAgent(Fatal):
    """xen+ssh input needs ssh-agent authentication ($SSH_AUTH_SOCK)."""


class GuestIsRunning(Fatal):
    """Live guests cannot be converted."""


def invalid_size_spec(spec: str) -> InvalidSizeSpec:
    return InvalidSizeSpec(
        code=2,
        msg=f"could not parse size specification '{spec}'",
        context={"spec": spec},
    )


def already_launched() -> AlreadyLaunched:
    return AlreadyLaunched(code=2, msg="can't allocate or add disks after launching")


def image_io_error(path: str, op: str, exc: OSError) -> ImageIOError:
    reason = exc.strerror or str(exc)
    return ImageIOError(
        code=1,
        msg=f"{op}: {path}: {reason}",
        cause=exc,
        context={"path": path, "op": op, "errno": exc.errno},
    )


def registration_failure(path: str, exc: Optional[BaseException] = None) -> RegistrationFailure:
    detail = f": {exc}" if exc is not None else ""
    return RegistrationFailure(
        code=1,
        msg=f"could not add drive {path}{detail}",
        cause=exc,
        context={"path": path},
    )


def invalid_connection_uri(uri: str, reason: str) -> InvalidConnectionUri:
    return InvalidConnectionUri(
        code=2,
        msg=f"could not parse '-ic {uri}'.  Original error message was: {reason}",
        context={"uri": uri, "reason": reason},
    )


def unsupported_backend(backend: str) -> UnsupportedBackend:
    return UnsupportedBackend(
        code=1,
        msg=(
            "because of libvirt bug https://bugzilla.redhat.com/show_bug.cgi?id=1134592 "
            "you must set this environment variable:\n\n"
            "export LIBGUESTFS_BACKEND=direct\n\n"
            "and then rerun the command (or set 'libguestfs_backend: direct' in your config)."
        ),
        context={"backend": backend},
    )


def missing_ssh_agent() -> MissingSshAgent:
    return MissingSshAgent(
        code=1,
        msg=(
            "ssh-agent authentication has not been set up ($SSH_AUTH_SOCK is not set). "
            "Start an agent with 'eval $(ssh-agent)', load your key with 'ssh-add', "
            "and make sure the Xen host accepts that key."
        ),
    )


def format_exception_for_cli(e: BaseException, *, verbose: int = 0) -> str:
    """
    One-liner output for CLI.

    verbose=0: just message
    verbose=1: message + compact context (if any)
    verbose>=2: message + context + cause
    """
    if isinstance(e, Libvirt2KvmError):
        return e.user_message(
            include_context=(verbose >= 1),
            include_cause=(verbose >= 2),
        )

    if verbose >= 2:
        return f"{type(e).__name__}: {_one_line(str(e))}"
    return _one_line(str(e)) or type(e).__name__
