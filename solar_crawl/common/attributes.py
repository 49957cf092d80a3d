"""Installer attribute extraction from the free-form ``groupContent`` blob."""

from __future__ import annotations

import json
import math
from typing import Any

INSTALLER_FIELDS = {
    "installer_name": "設置者名稱",
    "status": "案件狀態",
    "renewable_type": "再生能源類別",
    "equipment_type": "設備型別",
    "location_type": "設置位置",
    "capacity": "商轉容量",
}


def _parse_group_value(value: Any) -> dict | None:
    if isinstance(value, dict):
        return value or None
    if not isinstance(value, str):
        return None
    try:
        parsed = json.loads(value)
    except ValueError:
        return None
    if isinstance(parsed, dict) and parsed:
        return parsed
    return None


def extract_installer_info(point: dict) -> dict[str, Any]:
    """Return installer attributes from the first parseable ``groupContent`` entry.

    Missing attributes are ``None``.
    """
    info: dict[str, Any] = {name: None for name in INSTALLER_FIELDS}
    groups = point.get("groupContent")
    if not isinstance(groups, list):
        return info

    for group in groups:
        if not isinstance(group, dict) or "value" not in group:
            continue
        value_data = _parse_group_value(group["value"])
        if value_data is None:
            continue
        for name, source_key in INSTALLER_FIELDS.items():
            info[name] = value_data.get(source_key)
        break

    return info


def parse_capacity(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    if "_" in text:
        return None
    try:
        parsed = float(text)
    except ValueError:
        return None
    if not math.isfinite(parsed):
        return None
    return parsed
