"""185 进制数字系统测试"""

import pytest
from meldtask.codec import from185, to185
from meldtask.codec.numeral import BASE, NUMERAL_ALPHABET


class TestNumeral:
    def test_alphabet(self) -> None:
        assert BASE == 185
        assert len(set(NUMERAL_ALPHABET)) == 185
        for ch in ",[]\\ ":
            assert ch not in NUMERAL_ALPHABET

    def test_digits(self) -> None:
        assert to185(0) == NUMERAL_ALPHABET[0]
        assert to185(184) == NUMERAL_ALPHABET[-1] == "ÿ"
        assert to185(185) == NUMERAL_ALPHABET[1] + NUMERAL_ALPHABET[0]

    @pytest.mark.parametrize("value", [0, 1, 184, 185, 34224, 10**9])
    def test_parse(self, value: int) -> None:
        assert from185(to185(value)) == value

    def test_invalid(self) -> None:
        with pytest.raises(ValueError):
            to185(-1)
        with pytest.raises(ValueError):
            from185("")
        with pytest.raises(ValueError):
            from185("a,b")
