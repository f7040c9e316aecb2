"""Unit tests for auth/validation.py -- normalization and the password policy.

Covers:
- username length boundaries (2/3/30/31) after trimming
- password length boundaries and each character class
- all violated fields reported together
- email trimming/lowercasing and rejection of malformed addresses
- login input ordering (identifier before password) and non-string input
"""

import pytest

from auth.errors import ValidationError
from auth.validation import (
    check_new_password,
    normalize_email,
    normalize_login,
    normalize_registration,
    password_problems,
)

GOOD_EMAIL = "someone@example.com"
GOOD_PASSWORD = "Abc12345!"


class TestUsername:
    @pytest.mark.parametrize("length", [3, 30])
    def test_boundary_lengths_accepted(self, length: int) -> None:
        username, _, _ = normalize_registration("u" * length, GOOD_EMAIL, GOOD_PASSWORD)
        assert len(username) == length

    @pytest.mark.parametrize("length", [2, 31])
    def test_out_of_range_lengths_rejected(self, length: int) -> None:
        with pytest.raises(ValidationError) as info:
            normalize_registration("u" * length, GOOD_EMAIL, GOOD_PASSWORD)
        assert info.value.fields == ["username"]

    def test_username_is_trimmed_before_length_check(self) -> None:
        """'  ab  ' is 2 characters once trimmed, so it fails."""
        with pytest.raises(ValidationError):
            normalize_registration("  ab  ", GOOD_EMAIL, GOOD_PASSWORD)
        username, _, _ = normalize_registration("  alice  ", GOOD_EMAIL, GOOD_PASSWORD)
        assert username == "alice"

    def test_unicode_username_accepted(self) -> None:
        username, _, _ = normalize_registration("用户名123", GOOD_EMAIL, GOOD_PASSWORD)
        assert username == "用户名123"

    def test_at_sign_rejected(self) -> None:
        """A username shaped like an email could shadow that email at login."""
        with pytest.raises(ValidationError) as info:
            normalize_registration("someone@example.com", "other@example.com", GOOD_PASSWORD)
        assert info.value.fields == ["username"]
        assert any("@" in msg for msg in info.value.problems["username"])


class TestPasswordPolicy:
    def test_exactly_eight_characters_with_all_classes_accepted(self) -> None:
        assert password_problems("Abc1234!") == []

    def test_seven_characters_rejected(self) -> None:
        assert password_problems("Abc123!")

    def test_128_accepted_129_rejected(self) -> None:
        base = "Aa1!"
        assert password_problems(base * 32) == []
        assert password_problems(base * 32 + "x")

    @pytest.mark.parametrize(
        "password, missing",
        [
            ("abc12345!", "uppercase"),
            ("ABC12345!", "lowercase"),
            ("Abcdefgh!", "digit"),
            ("Abc123456", "special"),
        ],
    )
    def test_each_character_class_required(self, password: str, missing: str) -> None:
        problems = password_problems(password)
        assert len(problems) == 1
        assert missing in problems[0]

    def test_check_new_password_reports_new_password_field(self) -> None:
        with pytest.raises(ValidationError) as info:
            check_new_password("weak")
        assert info.value.fields == ["new_password"]

    def test_password_not_trimmed(self) -> None:
        assert check_new_password(" Abc1234") == " Abc1234"


class TestRegistrationReporting:
    def test_all_violated_fields_enumerated(self) -> None:
        with pytest.raises(ValidationError) as info:
            normalize_registration("ab", "not-an-email", "short")
        assert set(info.value.fields) == {"username", "email", "password"}
        assert info.value.detail()["fields"] == info.value.fields

    def test_structured_values_rejected(self) -> None:
        with pytest.raises(ValidationError) as info:
            normalize_registration({"$ne": None}, GOOD_EMAIL, GOOD_PASSWORD)
        assert info.value.fields == ["username"]


class TestEmail:
    def test_trimmed_and_lowercased(self) -> None:
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"

    @pytest.mark.parametrize("email", ["", "plainaddress", "@example.com", "a@", "a b@example.com"])
    def test_malformed_rejected(self, email: str) -> None:
        with pytest.raises(ValidationError) as info:
            normalize_email(email)
        assert info.value.fields == ["email"]


class TestLoginInput:
    def test_identifier_required_first(self) -> None:
        with pytest.raises(ValidationError) as info:
            normalize_login("   ", "")
        assert info.value.fields == ["identifier"]
        assert info.value.message == "identifier required"

    def test_password_required(self) -> None:
        with pytest.raises(ValidationError) as info:
            normalize_login("alice", "")
        assert info.value.message == "password required"

    def test_identifier_trimmed(self) -> None:
        assert normalize_login("  alice  ", "pw") == ("alice", "pw")

    def test_object_identifier_rejected(self) -> None:
        with pytest.raises(ValidationError):
            normalize_login({"$gt": ""}, "pw")
