"""
File server phase — Samba shares for the media and ROM directories.

Shares live in a managed block of ``/etc/samba/smb.conf`` so the
distribution's ``[global]`` section and any shares the operator added
by hand are preserved.
"""

from __future__ import annotations

from commandcenter.core.config.settings import Settings
from commandcenter.core.context import RunContext
from commandcenter.core.models.phase import FailurePolicy, Phase
from commandcenter.core.models.validation import CheckKind
from commandcenter.phases.common import (
    apt_install_steps,
    clear_port_step,
    ensure_dirs,
    managed_block,
    validate_step,
)

NAME = "fileserver"
SMB_CONF = "/etc/samba/smb.conf"
SMB_PORT = 445
SHARES = {
    "Videos": "Movies and TV Shows",
    "Music": "Music Library",
    "ROMs": "Gaming ROMs",
    "Downloads": "Downloads",
}


def render_shares(user: str, home: str) -> str:
    sections = []
    for share, comment in SHARES.items():
        sections.append(
            f"[{share}]\n"
            f"   comment = {comment}\n"
            f"   path = {home}/{share}\n"
            "   browseable = yes\n"
            "   writable = yes\n"
            "   guest ok = no\n"
            f"   valid users = {user}\n"
            "   create mask = 0664\n"
            "   directory mask = 0775\n"
            f"   force user = {user}\n"
        )
    return "\n".join(sections)


def create_share_dirs(ctx: RunContext) -> None:
    home = ctx.settings.user_home
    ensure_dirs([home / share for share in SHARES])


def write_shares(ctx: RunContext) -> None:
    settings = ctx.settings
    user = settings.effective_user
    home = "/root" if user == "root" else f"/home/{user}"
    begin, end = managed_block("shares")
    ctx.mutator.upsert_block(settings.system_path(SMB_CONF), begin, end, render_shares(user, home), owner=NAME)


def restart_samba(ctx: RunContext) -> None:
    ctx.resolver.assert_cleared(ports=[SMB_PORT])
    ctx.services.enable("smbd", now=True)
    ctx.services.restart("smbd")


def build(settings: Settings) -> Phase:
    phase = Phase(
        name=NAME,
        requires=["services"],
        version="1",
        description="Samba file server",
    )
    apt_install_steps(phase, ["samba", "samba-common-bin"], group="fileserver")
    clear_port_step(phase, SMB_PORT, service=NAME, own_processes=["smbd"])
    phase.add("share-dirs", create_share_dirs, policy=FailurePolicy.BEST_EFFORT, description="Share directories")
    phase.add("shares", write_shares, description=f"Managed shares in {SMB_CONF}")
    phase.add("restart-samba", restart_samba, description="Enable and restart smbd")
    validate_step(phase, "samba", CheckKind.PORT_LISTENING, f"127.0.0.1:{SMB_PORT}")
    return phase
