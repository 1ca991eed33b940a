"""185 进制数字系统 -- 令牌数字头使用

字母表：除 , [ ] \\ 外的 90 个可打印 ASCII 字符（0x21-0x7E），
其后接 Latin-1 的 U+00A1-U+00FF 共 95 个字符。
分隔符 "," 不在字母表内，数字头可以按首次出现的分隔符切分。
"""

_EXCLUDED = {",", "[", "]", "\\"}

NUMERAL_ALPHABET = "".join(
    ch for ch in map(chr, range(0x21, 0x7F)) if ch not in _EXCLUDED
) + "".join(map(chr, range(0xA1, 0x100)))

BASE = len(NUMERAL_ALPHABET)

_INDEX = {ch: i for i, ch in enumerate(NUMERAL_ALPHABET)}


def to185(value: int) -> str:
    """非负整数 -> 185 进制字符串（高位在前）"""
    if value < 0:
        raise ValueError(f"不支持负数: {value}")
    if value == 0:
        return NUMERAL_ALPHABET[0]
    digits: list[str] = []
    while value > 0:
        value, rem = divmod(value, BASE)
        digits.append(NUMERAL_ALPHABET[rem])
    return "".join(reversed(digits))


def from185(digits: str) -> int:
    """185 进制字符串 -> 整数

    Raises:
        ValueError: 空串或含字母表外字符
    """
    if not digits:
        raise ValueError("空的数字串")
    value = 0
    for ch in digits:
        index = _INDEX.get(ch)
        if index is None:
            raise ValueError(f"非法数字字符: {ch!r}")
        value = value * BASE + index
    return value
