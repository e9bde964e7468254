import base64
from decimal import Decimal

import pytest

from courtside.payment_request import (
    PaymentRequest,
    display_amount,
    encode,
    render_qr_png,
    render_qr_png_data_url,
    validate_amount,
)
from courtside.validation import ValidationError


def make_request(**overrides):
    fields = dict(
        amount=Decimal("280.00"),
        currency="CZK",
        recipient_account="123456789",
        recipient_bank="0100",
        recipient_name="Club",
    )
    fields.update(overrides)
    return PaymentRequest(**fields)


def test_basic_request_layout():
    encoded = encode(make_request())
    assert encoded.startswith("SPD*1.0*")
    assert "AM:280.00*CC:CZK" in encoded
    assert encoded == "SPD*1.0*ACC:123456789/0100*AM:280.00*CC:CZK*RN:Club"


def test_optional_fields_in_fixed_order():
    encoded = encode(make_request(
        message="Court 1 17:00",
        reference="000042",
        constant_symbol="0308",
        specific_symbol="7",
    ))
    assert encoded == (
        "SPD*1.0*ACC:123456789/0100*AM:280.00*CC:CZK*RN:Club"
        "*MSG:Court 1 17%3A00*X-VS:000042*X-KS:0308*X-SS:7"
    )


def test_spaces_stay_literal_in_text_fields():
    encoded = encode(make_request(recipient_name="Tenisovy klub", message="Kurt 1, 17.00-18.30"))
    assert "*RN:Tenisovy klub*" in encoded
    assert "%20" not in encoded
    assert encoded.endswith("*MSG:Kurt 1, 17.00-18.30")


def test_iban_without_bank_code():
    encoded = encode(make_request(recipient_account="CZ6508000000192000145399", recipient_bank=None))
    assert "*ACC:CZ6508000000192000145399*" in encoded


def test_asterisk_in_text_cannot_break_segments():
    encoded = encode(make_request(recipient_name="Club*Evil", message="a*b"))
    assert encoded.count("*") == 6
    assert "RN:Club%2AEvil" in encoded
    assert "MSG:a%2Ab" in encoded


def test_text_fields_are_truncated():
    encoded = encode(make_request(recipient_name="N" * 50, message="M" * 100))
    assert f"RN:{'N' * 35}*" in encoded
    assert encoded.endswith(f"MSG:{'M' * 60}")


def test_encoding_is_deterministic():
    request = make_request(message="Tennis", reference="12")
    assert encode(request) == encode(request)


@pytest.mark.parametrize("amount", ["0", "0.001", "50000.01", "-5", "abc", "NaN"])
def test_amount_out_of_range_or_malformed(amount):
    with pytest.raises(ValidationError):
        encode(make_request(amount=amount))


def test_amount_range_is_configurable():
    assert validate_amount("75000.00", max_amount=Decimal("100000")) == Decimal("75000.00")
    with pytest.raises(ValidationError):
        validate_amount("5.00", min_amount=Decimal("10"))


@pytest.mark.parametrize("field", ["reference", "constant_symbol", "specific_symbol"])
def test_symbols_must_be_short_digits(field):
    with pytest.raises(ValidationError):
        encode(make_request(**{field: "12345678901"}))
    with pytest.raises(ValidationError):
        encode(make_request(**{field: "12A"}))


def test_missing_account_and_bad_currency():
    with pytest.raises(ValidationError):
        encode(make_request(recipient_account=" "))
    with pytest.raises(ValidationError):
        encode(make_request(currency="KC"))


def test_display_amount():
    assert display_amount(Decimal("280"), "CZK") == "280.00 CZK"


def test_qr_png_is_a_png_image():
    png = render_qr_png(encode(make_request()))
    assert png[:8] == b"\x89PNG\r\n\x1a\n"

    data_url = render_qr_png_data_url("SPD*1.0*ACC:1/0100*AM:1.00*CC:CZK")
    prefix = "data:image/png;base64,"
    assert data_url.startswith(prefix)
    assert base64.b64decode(data_url[len(prefix):])[:4] == b"\x89PNG"
