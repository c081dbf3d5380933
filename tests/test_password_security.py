"""Tests for password rules, hashing and history."""

from datetime import timedelta

import pytest

from readiness_auth.domain.models.user_domain_model import PasswordHistoryEntry, utcnow
from readiness_auth.domain.services.password_policy import PasswordPolicy

from conftest import STRONG_PASSWORD


class TestComplexity:
    def test_strong_password_is_valid(self):
        result = PasswordPolicy.validate_complexity(STRONG_PASSWORD)

        assert result.is_valid
        assert result.errors == []
        assert result.strength == "strong"

    def test_reports_every_failed_rule(self):
        result = PasswordPolicy.validate_complexity("abc")

        assert not result.is_valid
        assert result.strength == "weak"
        assert "Password must be at least 8 characters long" in result.errors
        assert "Password must contain at least one uppercase letter" in result.errors
        assert "Password must contain at least one number" in result.errors
        assert "Password must contain at least one special character" in result.errors
        assert "Password must contain at least one lowercase letter" not in result.errors

    def test_rejects_common_patterns(self):
        result = PasswordPolicy.validate_complexity("MyPassword!9")

        assert not result.is_valid
        assert result.errors == ["Password contains common patterns and is not secure"]

    def test_rejects_overlong_password(self):
        result = PasswordPolicy.validate_complexity("Aa1!" * 40)

        assert "Password must be no more than 128 characters long" in result.errors

    def test_medium_strength_for_short_valid_password(self):
        # 8 characters, all four classes: 1 length point + 4 variety points
        result = PasswordPolicy.validate_complexity("Xy7#kLmq")

        assert result.is_valid
        assert result.strength == "medium"


class TestStrengthMeter:
    def test_feedback_lists_missing_classes(self):
        meter = PasswordPolicy.strength_meter("short")

        assert "Use at least 8 characters" in meter.feedback
        assert "Add uppercase letters" in meter.feedback
        assert "Add numbers" in meter.feedback
        assert meter.strength == "weak"

    def test_strong_password_feedback(self):
        meter = PasswordPolicy.strength_meter(STRONG_PASSWORD)

        assert meter.feedback == ["Strong password!"]
        assert meter.score == 7
        assert meter.strength == "strong"

    def test_common_pattern_feedback(self):
        meter = PasswordPolicy.strength_meter("Qwerty!2345678")

        assert "Avoid common patterns" in meter.feedback


class TestHistoryRules:
    def test_add_to_history_prepends_and_truncates(self):
        history = [PasswordHistoryEntry(password_hash=f"h{i}") for i in range(3)]

        updated = PasswordPolicy.add_to_history("new", history, limit=3)

        assert [entry.password_hash for entry in updated] == ["new", "h0", "h1"]

    def test_should_update_when_never_changed(self):
        assert PasswordPolicy.should_update(None, 90)

    def test_should_update_after_max_age(self):
        assert PasswordPolicy.should_update(utcnow() - timedelta(days=91), 90)
        assert not PasswordPolicy.should_update(utcnow() - timedelta(days=10), 90)

    def test_naive_timestamps_are_treated_as_utc(self):
        naive = (utcnow() - timedelta(days=5)).replace(tzinfo=None)

        assert not PasswordPolicy.should_update(naive, 90)

    def test_history_entry_round_trips_through_dict(self):
        entry = PasswordHistoryEntry(password_hash="abc")

        restored = PasswordHistoryEntry.from_dict(entry.to_dict())

        assert restored == entry


class TestPasswordSecurityService:
    async def test_hash_is_salted_argon2id(self, password_security):
        first = await password_security.hash_password(STRONG_PASSWORD)
        second = await password_security.hash_password(STRONG_PASSWORD)

        assert first.startswith("$argon2id$")
        assert first != second
        assert STRONG_PASSWORD not in first

    async def test_verify_password(self, password_security):
        password_hash = await password_security.hash_password(STRONG_PASSWORD)

        assert await password_security.verify_password(STRONG_PASSWORD, password_hash)
        assert not await password_security.verify_password("Wr0ng!Pass123", password_hash)

    async def test_verify_never_raises_on_bad_input(self, password_security):
        assert not await password_security.verify_password("", "$argon2id$whatever")
        assert not await password_security.verify_password(STRONG_PASSWORD, None)
        assert not await password_security.verify_password(STRONG_PASSWORD, "not-a-hash")

    async def test_dummy_verification_always_fails(self, password_security):
        assert await password_security.verify_dummy_password(STRONG_PASSWORD) is False
        assert await password_security.verify_dummy_password("") is False

    async def test_password_in_history(self, password_security):
        old_hash = await password_security.hash_password(STRONG_PASSWORD)
        history = password_security.add_password_to_history(old_hash, [])

        assert await password_security.is_password_in_history(STRONG_PASSWORD, history)
        assert not await password_security.is_password_in_history("Other!Pass456", history)
        assert not await password_security.is_password_in_history(STRONG_PASSWORD, [])

    def test_history_limit_comes_from_settings(self, password_security, settings):
        history = []
        for i in range(settings.PASSWORD_HISTORY_LIMIT + 3):
            history = password_security.add_password_to_history(f"hash-{i}", history)

        assert len(history) == settings.PASSWORD_HISTORY_LIMIT
        assert history[0].password_hash == f"hash-{settings.PASSWORD_HISTORY_LIMIT + 2}"

    def test_generated_password_passes_complexity(self, password_security):
        for _ in range(20):
            generated = password_security.generate_secure_password()
            assert len(generated) == 16
            assert any(c.islower() for c in generated)
            assert any(c.isupper() for c in generated)
            assert any(c.isdigit() for c in generated)
            assert any(c in "!@#$%^&*" for c in generated)

    def test_generated_password_rejects_tiny_length(self, password_security):
        with pytest.raises(ValueError):
            password_security.generate_secure_password(3)

    def test_password_age_uses_configured_maximum(self, password_security, settings):
        max_age = settings.PASSWORD_MAX_AGE_DAYS

        assert password_security.should_update_password(utcnow() - timedelta(days=max_age + 1))
        assert not password_security.should_update_password(utcnow())
