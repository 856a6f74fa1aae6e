import pytest
from pydantic import ValidationError

from borkin.core.config import Settings
from borkin.core.enums import PaymentEnvironment


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


class TestPaymentEnvironment:
    @pytest.mark.parametrize(
        "key,expected",
        [
            ("", PaymentEnvironment.TEST),
            ("sk_test_abc", PaymentEnvironment.TEST),
            ("rk_test_abc", PaymentEnvironment.TEST),
            ("sk_live_abc", PaymentEnvironment.LIVE),
            ("rk_live_abc", PaymentEnvironment.LIVE),
        ],
    )
    def test_derived_from_key_prefix(self, key: str, expected: PaymentEnvironment) -> None:
        assert _settings(stripe_secret_key=key, stripe_mode=None).payment_environment == expected

    def test_matching_mode_is_accepted(self) -> None:
        settings = _settings(stripe_secret_key="sk_live_abc", stripe_mode="live")

        assert settings.payment_environment == PaymentEnvironment.LIVE

    def test_mode_contradicting_key_is_rejected(self) -> None:
        with pytest.raises(ValidationError, match="contradicts"):
            _settings(stripe_secret_key="sk_live_abc", stripe_mode="test")
        with pytest.raises(ValidationError, match="contradicts"):
            _settings(stripe_secret_key="sk_test_abc", stripe_mode="live")

    def test_mode_applies_without_key(self) -> None:
        assert _settings(stripe_secret_key="", stripe_mode="live").payment_environment == (
            PaymentEnvironment.LIVE
        )


def test_admin_emails_are_normalized() -> None:
    settings = _settings(admin_emails_csv=" Ops@Borkin.test, ,finance@borkin.test ")

    assert settings.admin_emails == {"ops@borkin.test", "finance@borkin.test"}


def test_fee_percentages_are_bounded() -> None:
    with pytest.raises(ValidationError):
        _settings(platform_fee_percentage=100)
    with pytest.raises(ValidationError):
        _settings(processor_fixed_fee_cents=-1)
