from wager_engine.util.parsing import safe_dict, safe_float, safe_str


def test_safe_float_parses_numeric_inputs() -> None:
    assert safe_float(1) == 1.0
    assert safe_float(1.5) == 1.5
    assert safe_float("-2.25") == -2.25
    assert safe_float("+150") == 150.0
    assert safe_float(True) is None
    assert safe_float("  ") is None
    assert safe_float("abc") is None
    assert safe_float("nan") is None
    assert safe_float(float("inf")) is None


def test_safe_str_and_dict() -> None:
    assert safe_str("  Celtics ") == "Celtics"
    assert safe_str(12) == "12"
    assert safe_str(None) == ""
    assert safe_str({"a": 1}) == ""
    assert safe_dict({"a": 1}) == {"a": 1}
    assert safe_dict(["a"]) == {}
