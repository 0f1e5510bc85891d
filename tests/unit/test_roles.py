import pytest

from pdfpost.domain.models import LedgerAction, PipelineKind
from pdfpost.roles import ROLE_PROFILES, SUPPORTED_ROLES, validate_role


@pytest.mark.unit
@pytest.mark.parametrize("role", SUPPORTED_ROLES)
def test_supported_role_is_accepted(role: str) -> None:
    validated = validate_role(role)
    assert validated.name == role


@pytest.mark.unit
def test_role_profiles_bind_pipeline_action_and_registry() -> None:
    logo = ROLE_PROFILES["worker-logo"]
    mail = ROLE_PROFILES["worker-mail"]

    assert (logo.kind, logo.action, logo.config_id) == (PipelineKind.LOGO, LedgerAction.PROCESSED_LOGO, "PDFHANDLER")
    assert (mail.kind, mail.action, mail.config_id) == (PipelineKind.MAIL, LedgerAction.PROCESSED_MAIL, "PDFMAILER")


@pytest.mark.unit
def test_invalid_role_rejected_with_actionable_message() -> None:
    with pytest.raises(ValueError) as exc_info:
        validate_role("worker-unknown")

    message = str(exc_info.value)
    assert "Unsupported role 'worker-unknown'" in message
    assert "Supported roles: worker-logo, worker-mail." in message
