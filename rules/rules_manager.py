"""
走查规则管理器

维护 qa_rules.json：分析服务在比对设计稿与实际截图时必须遵守的规则，
注入到发给分析服务的固定指令中。支持运行时热重载。
"""
import json
import os
from typing import Dict, List


class RulesManager:
    """规则加载 / 查询 / 热重载"""

    def __init__(self, rules_path: str) -> None:
        self._rules_path = rules_path
        self._rules: Dict = self._load_json(rules_path)

    @staticmethod
    def _load_json(path: str) -> dict:
        if os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        return {}

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def get_rules(self) -> List[str]:
        """返回走查规则列表。"""
        return list(self._rules.get("rules", []))

    def get_focus_areas(self) -> List[str]:
        """返回重点检查维度（颜色、字体、间距等）。"""
        return list(self._rules.get("focus_areas", []))

    def get_rules_prompt(self) -> str:
        """生成规则提示文本，用于注入分析指令；无规则时返回空字符串。"""
        rules = self.get_rules()
        focus = self.get_focus_areas()
        if not rules and not focus:
            return ""

        lines: List[str] = []
        if rules:
            lines.append("【走查规则】")
            lines.extend(f"  {i + 1}. {r}" for i, r in enumerate(rules))
        if focus:
            if lines:
                lines.append("")
            lines.append("【重点检查维度】")
            lines.extend(f"  - {f}" for f in focus)
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # 热重载
    # ------------------------------------------------------------------

    def reload(self) -> None:
        """重新从磁盘加载规则（每次分析前调用）。"""
        self._rules = self._load_json(self._rules_path)
