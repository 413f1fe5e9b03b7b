"""Tests for notification templates."""

import pytest

from passage.notifications.templates import CodeEmailData, Scenario, render


def _data(**overrides) -> CodeEmailData:
    values = {
        "first_name": "Ada",
        "code": "042917",
        "expires_in_minutes": 10,
        "support_email": "support@passage.dev",
    }
    values.update(overrides)
    return CodeEmailData(**values)


class TestRender:
    """Tests for render()."""

    @pytest.mark.parametrize(
        "scenario", [Scenario.VERIFY_EMAIL, Scenario.PASSWORD_RESET_CODE]
    )
    def test_body_carries_code_and_expiry(self, scenario: Scenario):
        """Code, lifetime and support contact all reach the body."""
        rendered = render(scenario, _data())
        assert "042917" in rendered.body
        assert "10 minutes" in rendered.body
        assert "support@passage.dev" in rendered.body

    @pytest.mark.parametrize(
        "scenario", [Scenario.VERIFY_EMAIL, Scenario.PASSWORD_RESET_CODE]
    )
    def test_code_never_in_subject(self, scenario: Scenario):
        """Subjects are logged, so they must not carry the code."""
        assert "042917" not in render(scenario, _data()).subject

    def test_greets_by_first_name(self):
        """The greeting uses the recipient's first name."""
        assert render(Scenario.VERIFY_EMAIL, _data()).body.startswith("Hi Ada,")

    def test_greeting_fallback(self):
        """Without a first name the greeting stays friendly."""
        body = render(Scenario.VERIFY_EMAIL, _data(first_name="")).body
        assert body.startswith("Hi there,")

    def test_accepts_string_scenario_id(self):
        """Scenario IDs work as plain strings."""
        rendered = render("user.password_reset_code", _data())
        assert rendered.subject == "Your password reset code"

    def test_unknown_scenario_raises_key_error(self):
        """Unknown scenario IDs are rejected."""
        with pytest.raises(KeyError):
            render("user.unknown", _data())

    def test_wrong_data_type_raises(self):
        """Data of the wrong type is rejected before rendering."""
        with pytest.raises(TypeError, match="CodeEmailData"):
            render(Scenario.VERIFY_EMAIL, {"code": "042917"})
