from __future__ import annotations

from collections.abc import Sequence

from pdfpost.domain.models import MailOption


DEFAULT_VERSION = "*ALL"

EMAIL_TO = "EMAIL_TO"
EMAIL_CC = "EMAIL_CC"
EMAIL_BCC = "EMAIL_BCC"
EMAIL_FROM = "EMAIL_FROM"
EMAIL_SUBJECT = "EMAIL_SUBJECT"
EMAIL_TEXT = "EMAIL_TEXT"


def merge_mail_options(
    report_options: Sequence[MailOption],
    version_options: Sequence[MailOption],
) -> list[MailOption]:
    """Combine report-level defaults with version-level overrides.

    An option type present at version level replaces every report-level
    option of that type; other report options are kept as they are.
    """
    overridden = {option.option_type for option in version_options}
    merged = [option for option in report_options if option.option_type not in overridden]
    merged.extend(version_options)
    return merged


def values_of(options: Sequence[MailOption], option_type: str) -> list[str]:
    return [option.value for option in options if option.option_type == option_type and option.value]


def first_value(options: Sequence[MailOption], option_type: str, default: str = "") -> str:
    values = values_of(options, option_type)
    return values[0] if values else default
