"""MappingRegistry -- 映射组注册表与字符置换

每个映射组定义等长的 primary / secondary 两个字符序列，
置换时两者按下标互换（对合：再置换一次即还原）。
注册时完成全部校验，非法定义直接抛出 MappingDefinitionError。
"""

from collections import Counter
from collections.abc import Iterable

import structlog
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from .exceptions import MappingDefinitionError, UnknownMappingGroupError, UnknownVersionError

log = structlog.get_logger()

MAX_MAPPING_SIZE = 218

# 当前编码使用的格式版本
CURRENT_VERSION = 0

# ==========================================
# 字符集定义
# ==========================================

# 0x80-0xFF 全部 Latin-1 字符（128）
SWAP_LATIN1 = "".join(map(chr, range(0x80, 0x100)))

# 除 , [ ] \ 与空格外的可打印 ASCII（90）
SWAP_ASCII_90 = "".join(
    ch for ch in map(chr, range(0x21, 0x7F)) if ch not in {",", "[", "]", "\\"}
)

# Latin-1 + ASCII（218）
SWAP_COMBINED = SWAP_LATIN1 + SWAP_ASCII_90

# ぁ-ゖ（86）
ALL_HIRA = "".join(map(chr, range(0x3041, 0x3041 + 86)))

# ァ-ヺ + ー（91）
ALL_KATA = "".join(map(chr, range(0x30A1, 0x30A1 + 90))) + "ー"

# 高频平假名 64 + 片假名 64
JP_BALANCE_128 = (
    "あいうえおかきくけこさしすせそたちつてとなにぬねのはひふへほ"
    "まみむめもやゆよらりるれろわをん"
    "がぎぐげござじずぜぞだでどばびぶべぼっ"
    "ーアイウエオカキクケコサシスセソタチツテトナニヌネノハヒフヘホ"
    "マミムメモヤユヨラリルレロワヲン"
    "ガギグゲゴジズダデドバビブベボプ"
)

# 任务管理高频汉字（41）
FREQ_KANJI_41 = "未中済完了待留急高低要締限始終確認決調考作送受見改写案件問備予自他主続休報連相会議"

# 一般文本高频汉字（132）
FREQ_KANJI_CULTURE_132 = (
    "日一十二本人大年三会中"
    "国長出五時行事生四間上"
    "分学的手後見下自地部者"
    "子東円同高社合前立内方"
    "代場理名家業発小新対月"
    "定気実力関体回政民動当"
    "法全明八野用市所通主相"
    "外文言機山不京作度校多"
    "道現公無海九問連員化物"
    "最表水意性教点正木利原"
    "書田近百先知平六話保万"
    "元工取今千金私支和売七"
)

FREQ_KANJI_CULTURE_128 = FREQ_KANJI_CULTURE_132[:128]


class MappingGroup(BaseModel):
    """映射组定义"""

    model_config = ConfigDict(frozen=True)

    id: int = Field(ge=0, description="版本内唯一的组 ID，写入令牌数字头")
    name: str = Field(description="组名（诊断用）")
    primary: str = Field(default="", description="希望从载荷中消除的字符（如日文）")
    secondary: str = Field(default="", description="置换目标字符（如 ASCII、Latin-1）")

    _table: dict[int, int] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: object) -> None:
        table: dict[int, int] = {}
        for a, b in zip(self.primary, self.secondary):
            table[ord(a)] = ord(b)
            table[ord(b)] = ord(a)
        self._table = table

    @property
    def is_pass_through(self) -> bool:
        return not self.primary

    def swap(self, text: str) -> str:
        """primary <-> secondary 互换"""
        if not self._table:
            return text
        return text.translate(self._table)

    def utf8_delta(self, counts: Counter) -> int:
        """置换后 UTF-8 字节数的变化量（负数表示缩短）"""
        delta = 0
        for ch, n in counts.items():
            mapped = self._table.get(ord(ch))
            if mapped is not None:
                delta += n * (len(chr(mapped).encode("utf-8")) - len(ch.encode("utf-8")))
        return delta


def validate_mapping_group(group: MappingGroup) -> None:
    """校验单个映射组

    Raises:
        MappingDefinitionError: 任一条件不满足
    """
    for label, seq in (("primary", group.primary), ("secondary", group.secondary)):
        if len(seq) > MAX_MAPPING_SIZE:
            raise MappingDefinitionError(
                group.name,
                f"{label} 长度 {len(seq)} 超过上限 {MAX_MAPPING_SIZE}",
            )
        dups = sorted(ch for ch, n in Counter(seq).items() if n > 1)
        if dups:
            raise MappingDefinitionError(
                group.name,
                f"{label} 含重复字符: {', '.join(dups)}",
            )

    if len(group.primary) != len(group.secondary):
        raise MappingDefinitionError(
            group.name,
            f"长度不一致: primary({len(group.primary)}) / secondary({len(group.secondary)})",
        )

    # 两个集合相交时置换不再是对合
    overlap = sorted(set(group.primary) & set(group.secondary))
    if overlap:
        raise MappingDefinitionError(
            group.name,
            f"primary 与 secondary 含相同字符: {', '.join(overlap)}",
        )


class MappingRegistry:
    """映射组注册表 -- 按格式版本管理映射组

    启动时注册，运行期间不变；查询未知版本或组 ID 抛出解码错误。
    """

    def __init__(self) -> None:
        self._versions: dict[int, dict[int, MappingGroup]] = {}

    def register(self, version: int, groups: Iterable[MappingGroup]) -> None:
        """注册一个版本的全部映射组

        Raises:
            MappingDefinitionError: 组定义不合法、组 ID 重复或版本缺少透传组
        """
        by_id: dict[int, MappingGroup] = {}
        for group in groups:
            validate_mapping_group(group)
            if group.id in by_id:
                raise MappingDefinitionError(group.name, f"组 ID {group.id} 重复")
            by_id[group.id] = group
        if not any(g.is_pass_through for g in by_id.values()):
            raise MappingDefinitionError(f"v{version}", "缺少透传组")
        self._versions[version] = by_id
        log.debug("mapping_version_registered", version=version, groups=len(by_id))

    @property
    def versions(self) -> list[int]:
        return sorted(self._versions)

    def groups(self, version: int) -> list[MappingGroup]:
        """按组 ID 升序返回某版本的全部映射组"""
        if version not in self._versions:
            raise UnknownVersionError(version)
        by_id = self._versions[version]
        return [by_id[i] for i in sorted(by_id)]

    def get(self, version: int, group_id: int) -> MappingGroup:
        """查询映射组

        Raises:
            UnknownVersionError: 版本未注册
            UnknownMappingGroupError: 组 ID 不存在
        """
        if version not in self._versions:
            raise UnknownVersionError(version)
        group = self._versions[version].get(group_id)
        if group is None:
            raise UnknownMappingGroupError(version, group_id)
        return group


def select_group(text: str, groups: Iterable[MappingGroup]) -> MappingGroup:
    """选择使置换后 UTF-8 长度最小的映射组

    并列时取组 ID 最小者；没有任何组能缩短载荷时选择透传组。
    """
    candidates = sorted(groups, key=lambda g: g.id)
    passthrough = next(g for g in candidates if g.is_pass_through)
    counts = Counter(text)
    best = passthrough
    best_delta = 0
    for group in candidates:
        if group.is_pass_through:
            continue
        delta = group.utf8_delta(counts)
        if delta < best_delta:
            best, best_delta = group, delta
    return best


def swap(text: str, group: MappingGroup) -> str:
    """按映射组互换字符（再次调用即还原）"""
    return group.swap(text)


MAPPING_GROUPS_V0: list[MappingGroup] = [
    MappingGroup(
        id=0,
        name="SUPER_JP_MIX",
        primary=ALL_HIRA + ALL_KATA + FREQ_KANJI_41,
        secondary=SWAP_COMBINED,
    ),
    MappingGroup(
        id=1,
        name="LATIN1_SAFE",
        primary=JP_BALANCE_128,
        secondary=SWAP_LATIN1,
    ),
    MappingGroup(
        id=2,
        name="CULTURE_FREQ_JP",
        primary=ALL_HIRA + FREQ_KANJI_CULTURE_132,
        secondary=SWAP_COMBINED,
    ),
    MappingGroup(
        id=3,
        name="CULTURE_FREQ_KANJI_JP",
        primary=FREQ_KANJI_CULTURE_128,
        secondary=SWAP_LATIN1,
    ),
    MappingGroup(id=4, name="PASS_THROUGH"),
]

DEFAULT_REGISTRY = MappingRegistry()
DEFAULT_REGISTRY.register(0, MAPPING_GROUPS_V0)
