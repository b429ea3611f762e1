from utils.currency import format_currency, format_signed, is_valid_amount


def test_is_valid_amount():
    assert is_valid_amount(0)
    assert is_valid_amount(12.5)
    assert not is_valid_amount(-0.01)
    assert not is_valid_amount(float("nan"))
    assert not is_valid_amount(float("inf"))
    assert not is_valid_amount(True)
    assert not is_valid_amount("10")
    assert not is_valid_amount(None)


def test_formatting():
    assert format_currency(1234.5) == "€1,234.50"
    assert format_currency(-12) == "-€12.00"
    assert format_signed(3, "$") == "+$3.00"
