"""Plain-text templates for account notifications.

Each scenario has a typed data class. render() refuses data of the wrong
type, so a call site cannot feed reset-code data to the verify-email
template by accident.
"""

from dataclasses import asdict, dataclass
from enum import StrEnum


class Scenario(StrEnum):
    """Named notification scenarios."""

    VERIFY_EMAIL = "user.verify_email"
    PASSWORD_RESET_CODE = "user.password_reset_code"


@dataclass(frozen=True)
class CodeEmailData:
    """Variables for the code-bearing email scenarios.

    Attributes:
        first_name: Recipient's given name ("" if unknown).
        code: Plaintext one-time code.
        expires_in_minutes: Code lifetime shown to the user.
        support_email: Contact address for help.
    """

    first_name: str
    code: str
    expires_in_minutes: int
    support_email: str


@dataclass(frozen=True)
class RenderedMessage:
    """Rendered subject and body, ready to hand to the dispatcher."""

    subject: str
    body: str


@dataclass(frozen=True)
class _Template:
    subject: str
    body: str
    data_type: type


_TEMPLATES: dict[Scenario, _Template] = {
    Scenario.VERIFY_EMAIL: _Template(
        subject="Verify your email address",
        body=(
            "Hi {greeting_name},\n\n"
            "Use this code to verify your email address:\n\n"
            "    {code}\n\n"
            "The code expires in {expires_in_minutes} minutes. "
            "If you didn't create an account, you can safely ignore this email.\n\n"
            "Questions? Contact {support_email}.\n"
        ),
        data_type=CodeEmailData,
    ),
    Scenario.PASSWORD_RESET_CODE: _Template(
        subject="Your password reset code",
        body=(
            "Hi {greeting_name},\n\n"
            "We received a request to reset your password. Your code is:\n\n"
            "    {code}\n\n"
            "The code expires in {expires_in_minutes} minutes. "
            "If you didn't request a reset, ignore this email; "
            "your password will not change.\n\n"
            "Questions? Contact {support_email}.\n"
        ),
        data_type=CodeEmailData,
    ),
}


def render(scenario: Scenario | str, data: object) -> RenderedMessage:
    """Render a scenario with its typed data.

    Args:
        scenario: Scenario or its string ID (e.g., "user.verify_email").
        data: Instance of the scenario's data class.

    Returns:
        RenderedMessage with subject and plain-text body.

    Raises:
        KeyError: If the scenario is unknown.
        TypeError: If data is not the scenario's data class.
    """
    try:
        template = _TEMPLATES[Scenario(scenario)]
    except ValueError as exc:
        raise KeyError(f"Unknown notification scenario: {scenario}") from exc

    if not isinstance(data, template.data_type):
        msg = (
            f"Scenario {scenario} expects {template.data_type.__name__}, "
            f"got {type(data).__name__}"
        )
        raise TypeError(msg)

    values = asdict(data)
    values["greeting_name"] = values.get("first_name") or "there"
    return RenderedMessage(
        subject=template.subject.format(**values),
        body=template.body.format(**values),
    )
