# tests/test_serial_text.py
import pytest
from serial_scanner.utils.serial_text import tokenize, to_candidate, is_valid_serial, iter_valid_serials

def test_tokenize_splits_on_whitespace_runs():
    assert tokenize("  2310211025 \n\n 12\t34 ") == ["2310211025", "12", "34"]
    assert tokenize("2310261085\n\n") == ["2310261085"]

def test_tokenize_empty_text():
    assert tokenize("") == []
    assert tokenize(" \n ") == []

def test_to_candidate_strips_non_digits():
    assert to_candidate("ABC1234567DEF") == "1234567"
    assert to_candidate("S/N:23102-11025") == "2310211025"
    assert to_candidate("23-1026-1085") == "2310261085"

@pytest.mark.parametrize("candidate", ["2310211025", "0000000000"])
def test_valid_serials(candidate):
    assert is_valid_serial(candidate)

@pytest.mark.parametrize("candidate", ["", "1234567", "23102110251", "231021102a", "２３１０２１１０２５"])
def test_invalid_serials(candidate):
    assert not is_valid_serial(candidate)

def test_letters_around_short_digit_run_do_not_validate():
    assert list(iter_valid_serials("ABC1234567DEF")) == []

def test_valid_serials_keep_recognizer_order():
    text = "MODEL 4050 SN 9876543210\n2310211025"
    assert list(iter_valid_serials(text)) == ["9876543210", "2310211025"]

def test_non_ascii_digits_are_stripped():
    assert to_candidate("2310211025\u0663") == "2310211025"
    assert list(iter_valid_serials("2310211025\u0663")) == ["2310211025"]
