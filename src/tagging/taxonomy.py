"""Closed tag taxonomy: tone, theme and style dimensions plus a fallback tag."""

from typing import Literal

TagDimension = Literal["tone", "theme", "style"]

TONE_TAGS: tuple[str, ...] = (
    "温情", "反转", "抽象", "自嘲", "讽刺", "励志", "无厘头", "黑色幽默",
    "暴躁", "尴尬", "甜蜜", "崩溃", "治愈", "魔性", "焦虑", "摆烂",
    "冷幽默", "心酸", "怀旧", "傲娇", "卑微", "破防", "凡尔赛", "阴阳怪气",
    "佛系", "燃", "中二", "正能量",
)

THEME_TAGS: tuple[str, ...] = (
    "职场", "恋爱", "学生", "社畜", "单身", "家庭", "朋友", "美食",
    "外卖", "考试", "租房", "加班", "游戏", "旅行", "通勤", "工资",
    "相亲", "节日", "熬夜", "天气", "宠物", "健身", "减肥", "理财",
    "网购", "社交", "追星", "校园", "亚文化", "科技", "八卦", "创业",
    "大厂", "面试",
)

STYLE_TAGS: tuple[str, ...] = (
    "对话", "独白", "故事", "排比", "谐音梗", "反问", "夸张", "押韵",
    "口号", "通知", "吐槽", "清单", "采访", "直播", "自问自答", "诗歌",
    "书信", "翻译腔", "纪录片", "会议纪要", "论文", "说明书", "拟人", "反讽",
    "隐喻", "蒙太奇", "字符画",
)

# Returned alone when the model picked nothing from the taxonomy.
FALLBACK_TAG = "其他"

MAX_TAGS = 3

TAG_TAXONOMY: dict[str, TagDimension] = {
    **{tag: "tone" for tag in TONE_TAGS},
    **{tag: "theme" for tag in THEME_TAGS},
    **{tag: "style" for tag in STYLE_TAGS},
}

ALL_TAGS: tuple[str, ...] = tuple(TAG_TAXONOMY)


def is_known_tag(tag: str) -> bool:
    return tag in TAG_TAXONOMY
