from __future__ import annotations

import logging
import os
import shlex
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Mapping, Sequence

from ..errors import CommandError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def proxy_environ(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return the *_proxy variables (any case) of the given environment."""

    src = os.environ if environ is None else environ
    return {k: v for k, v in src.items() if k.lower().endswith("_proxy")}


def build_argv(
    argv: Sequence[str],
    *,
    sudo: bool = False,
    chroot: str | None = None,
) -> list[str]:
    """Prefix argv for privileged and/or chroot execution.

    Proxy variables are passed as VAR=value arguments to sudo so they survive
    into both the sudo and the chroot context.
    """

    argv_list = list(argv)
    if chroot is None and not sudo:
        return argv_list

    proxies = [f"{k}={v}" for k, v in sorted(proxy_environ().items())]
    if chroot is not None:
        return ["sudo", *proxies, "chroot", chroot, *argv_list]
    return ["sudo", *proxies, *argv_list]


def _drain(stream: IO[str], sink: list[str], label: str) -> None:
    for line in iter(stream.readline, ""):
        line = line.rstrip("\n")
        sink.append(line)
        if line:
            logger.info("%s %s", label, line)
    stream.close()


def _run_streaming(argv_list: list[str], *, env: dict[str, str], cwd: str | None) -> CmdResult:
    p = subprocess.Popen(
        argv_list,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=cwd,
        env=env,
    )
    out_lines: list[str] = []
    err_lines: list[str] = []
    drains = [
        threading.Thread(target=_drain, args=(p.stdout, out_lines, "STDOUT"), daemon=True),
        threading.Thread(target=_drain, args=(p.stderr, err_lines, "STDERR"), daemon=True),
    ]
    for t in drains:
        t.start()
    for t in drains:
        t.join()
    returncode = p.wait()

    stdout = "".join(line + "\n" for line in out_lines)
    stderr = "".join(line + "\n" for line in err_lines)
    return CmdResult(argv=argv_list, returncode=returncode, stdout=stdout, stderr=stderr)


def run_cmd(
    argv: Sequence[str],
    *,
    sudo: bool = False,
    chroot: str | None = None,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    stream: bool = False,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command.
    - chroot runs the command as ``sudo chroot <root> ...``.
    - stream forwards stdout/stderr lines to the log while the command runs.
    - dry_run logs but does not execute.

    There is no timeout: a started command runs to completion.
    """

    if chroot is not None and not dry_run and not Path(chroot).is_dir():
        raise CommandError(list(argv), -1, f"chroot path {chroot} does not exist")

    argv_list = build_argv(argv, sudo=sudo, chroot=chroot)
    logger.info("CMD %s", _fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    full_env = dict(os.environ, **(env or {}))

    if stream and input_text is None:
        r = _run_streaming(argv_list, env=full_env, cwd=cwd)
    else:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=full_env,
        )
        r = CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout or "", stderr=p.stderr or "")
        if r.stdout:
            logger.debug("STDOUT %s", r.stdout.strip())
        if r.stderr:
            logger.debug("STDERR %s", r.stderr.strip())

    if check and r.returncode != 0:
        raise CommandError(argv_list, r.returncode, r.output)

    return r
