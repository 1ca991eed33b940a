"""映射组注册与置换测试"""

import pytest
from meldtask.codec import (
    DEFAULT_REGISTRY,
    MAX_MAPPING_SIZE,
    MappingDefinitionError,
    MappingGroup,
    MappingRegistry,
    UnknownMappingGroupError,
    UnknownVersionError,
    select_group,
    swap,
    validate_mapping_group,
)

_PASS = MappingGroup(id=9, name="PASS")


class TestValidation:
    """注册期校验"""

    def test_too_long(self) -> None:
        primary = "".join(chr(0x4E00 + i) for i in range(MAX_MAPPING_SIZE + 1))
        secondary = "".join(chr(0x100 + i) for i in range(MAX_MAPPING_SIZE + 1))
        with pytest.raises(MappingDefinitionError, match="超过上限"):
            validate_mapping_group(MappingGroup(id=0, name="g", primary=primary, secondary=secondary))

    def test_max_size_accepted(self) -> None:
        primary = "".join(chr(0x4E00 + i) for i in range(MAX_MAPPING_SIZE))
        secondary = "".join(chr(0x100 + i) for i in range(MAX_MAPPING_SIZE))
        validate_mapping_group(MappingGroup(id=0, name="g", primary=primary, secondary=secondary))

    def test_length_mismatch(self) -> None:
        with pytest.raises(MappingDefinitionError, match="长度不一致"):
            validate_mapping_group(MappingGroup(id=0, name="g", primary="あい", secondary="a"))

    def test_duplicate_in_primary(self) -> None:
        with pytest.raises(MappingDefinitionError, match="重复"):
            validate_mapping_group(MappingGroup(id=0, name="g", primary="ああ", secondary="ab"))

    def test_duplicate_in_secondary(self) -> None:
        with pytest.raises(MappingDefinitionError, match="重复"):
            validate_mapping_group(MappingGroup(id=0, name="g", primary="あい", secondary="aa"))

    def test_overlap(self) -> None:
        with pytest.raises(MappingDefinitionError, match="相同字符"):
            validate_mapping_group(MappingGroup(id=0, name="g", primary="あb", secondary="ba"))

    def test_fatal(self) -> None:
        with pytest.raises(MappingDefinitionError) as exc_info:
            validate_mapping_group(MappingGroup(id=0, name="g", primary="あ", secondary=""))
        assert exc_info.value.recoverable is False
        assert exc_info.value.group_name == "g"


class TestRegistry:
    """MappingRegistry"""

    def test_requires_pass_through(self) -> None:
        registry = MappingRegistry()
        with pytest.raises(MappingDefinitionError, match="透传"):
            registry.register(0, [MappingGroup(id=0, name="g", primary="あ", secondary="a")])

    def test_duplicate_group_id(self) -> None:
        registry = MappingRegistry()
        with pytest.raises(MappingDefinitionError):
            registry.register(0, [_PASS, MappingGroup(id=9, name="again")])

    def test_invalid_group_rejected_at_registration(self) -> None:
        registry = MappingRegistry()
        with pytest.raises(MappingDefinitionError):
            registry.register(0, [_PASS, MappingGroup(id=1, name="bad", primary="あい", secondary="a")])
        assert registry.versions == []

    def test_lookup(self) -> None:
        registry = MappingRegistry()
        group = MappingGroup(id=1, name="g", primary="あ", secondary="a")
        registry.register(3, [group, _PASS])
        assert registry.versions == [3]
        assert registry.get(3, 1) == group
        assert [g.id for g in registry.groups(3)] == [1, 9]

    def test_unknown_version(self) -> None:
        with pytest.raises(UnknownVersionError):
            MappingRegistry().get(0, 0)

    def test_unknown_group(self) -> None:
        registry = MappingRegistry()
        registry.register(0, [_PASS])
        with pytest.raises(UnknownMappingGroupError):
            registry.get(0, 1)


class TestDefaultRegistry:
    """内置 v0 映射组"""

    def test_version_zero_registered(self) -> None:
        assert 0 in DEFAULT_REGISTRY.versions
        names = [g.name for g in DEFAULT_REGISTRY.groups(0)]
        assert names == [
            "SUPER_JP_MIX",
            "LATIN1_SAFE",
            "CULTURE_FREQ_JP",
            "CULTURE_FREQ_KANJI_JP",
            "PASS_THROUGH",
        ]

    @pytest.mark.parametrize("group", DEFAULT_REGISTRY.groups(0), ids=lambda g: g.name)
    def test_swap_is_invertible(self, group: MappingGroup) -> None:
        text = "プロジェクト,設計[済]\\ ã Café ー。あいうえお漢字 abc XYZ 123 ÿ\x7f"
        assert swap(swap(text, group), group) == text

    @pytest.mark.parametrize("group", DEFAULT_REGISTRY.groups(0), ids=lambda g: g.name)
    def test_structural_characters_untouched(self, group: MappingGroup) -> None:
        assert swap(",[]\\", group) == ",[]\\"


class TestSelectGroup:
    """映射组选择"""

    def test_ascii_uses_pass_through(self) -> None:
        group = select_group("plain ascii text", DEFAULT_REGISTRY.groups(0))
        assert group.is_pass_through

    def test_japanese_uses_substitution(self) -> None:
        group = select_group("ひらがなとカタカナの設計", DEFAULT_REGISTRY.groups(0))
        assert not group.is_pass_through

    def test_best_delta_wins(self) -> None:
        latin = MappingGroup(id=0, name="latin", primary="あ", secondary="é")
        ascii_ = MappingGroup(id=1, name="ascii", primary="あ", secondary="a")
        assert select_group("ああ", [_PASS, latin, ascii_]).name == "ascii"

    def test_tie_goes_to_lowest_id(self) -> None:
        first = MappingGroup(id=0, name="first", primary="あ", secondary="a")
        second = MappingGroup(id=1, name="second", primary="あ", secondary="b")
        assert select_group("あ", [second, _PASS, first]).name == "first"

    def test_empty_text(self) -> None:
        assert select_group("", DEFAULT_REGISTRY.groups(0)).is_pass_through
