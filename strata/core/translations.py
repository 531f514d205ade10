from .models import Difficulty, Language, TaskType

TRANSLATIONS = {
    Language.EN: {
        "archive": "Archive",
        "new": "New Protocol",
        "settings": "Settings",
        "ancestor": "Ancestor",
        "current": "Current",
        "sub": "Sub-Layer",
        "empty_archive": "No saved protocols yet.",
        "total_steps": "Total Nodes",
        "difficulty_title": "Complexity Orbit",
        "composition_title": "Action Spectrum",
        "generating": "Generating strategy...",
        "recurring": "Recurring",
        Difficulty.EASY: "Easy",
        Difficulty.MEDIUM: "Medium",
        Difficulty.HARD: "Hard",
        TaskType.RESEARCH: "Research",
        TaskType.ACTION: "Action",
        TaskType.MILESTONE: "Milestone",
        TaskType.PREPARATION: "Preparation",
    },
    Language.ZH: {
        "archive": "归档",
        "new": "新协议",
        "settings": "设置",
        "ancestor": "上层",
        "current": "当前",
        "sub": "子层",
        "empty_archive": "暂无已保存的协议。",
        "total_steps": "节点总数",
        "difficulty_title": "复杂度轨道",
        "composition_title": "行动光谱",
        "generating": "正在生成策略...",
        "recurring": "循环",
        Difficulty.EASY: "简单",
        Difficulty.MEDIUM: "中等",
        Difficulty.HARD: "困难",
        TaskType.RESEARCH: "研究",
        TaskType.ACTION: "行动",
        TaskType.MILESTONE: "里程碑",
        TaskType.PREPARATION: "准备",
    },
}


def t(language: Language | str, key) -> str:
    """Look up a label, falling back to English, then to the key itself."""
    table = TRANSLATIONS.get(Language(language), TRANSLATIONS[Language.EN])
    if key in table:
        return table[key]
    return TRANSLATIONS[Language.EN].get(key, str(key))
