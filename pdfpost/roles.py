from __future__ import annotations

from dataclasses import dataclass

from pdfpost.domain.models import LedgerAction, PipelineKind

SUPPORTED_ROLES = (
    "worker-logo",
    "worker-mail",
)


@dataclass(frozen=True)
class RuntimeRole:
    name: str
    kind: PipelineKind
    action: LedgerAction
    config_id: str


ROLE_PROFILES: dict[str, RuntimeRole] = {
    "worker-logo": RuntimeRole(
        name="worker-logo",
        kind=PipelineKind.LOGO,
        action=LedgerAction.PROCESSED_LOGO,
        config_id="PDFHANDLER",
    ),
    "worker-mail": RuntimeRole(
        name="worker-mail",
        kind=PipelineKind.MAIL,
        action=LedgerAction.PROCESSED_MAIL,
        config_id="PDFMAILER",
    ),
}


def validate_role(role: str) -> RuntimeRole:
    profile = ROLE_PROFILES.get(role)
    if profile is not None:
        return profile

    supported = ", ".join(SUPPORTED_ROLES)
    raise ValueError(f"Unsupported role '{role}'. Supported roles: {supported}.")
