"""
prefectures.py - Japanese Prefecture Resolution
"""

import logging
import re
from typing import Dict, Optional

from .models import ShippingAddress

logger = logging.getLogger(__name__)

# JIS X 0401 order: code -> (romaji key, kanji name without suffix)
PREFECTURES = [
    ("hokkaido", "北海道"), ("aomori", "青森"), ("iwate", "岩手"), ("miyagi", "宮城"),
    ("akita", "秋田"), ("yamagata", "山形"), ("fukushima", "福島"), ("ibaraki", "茨城"),
    ("tochigi", "栃木"), ("gunma", "群馬"), ("saitama", "埼玉"), ("chiba", "千葉"),
    ("tokyo", "東京"), ("kanagawa", "神奈川"), ("niigata", "新潟"), ("toyama", "富山"),
    ("ishikawa", "石川"), ("fukui", "福井"), ("yamanashi", "山梨"), ("nagano", "長野"),
    ("gifu", "岐阜"), ("shizuoka", "静岡"), ("aichi", "愛知"), ("mie", "三重"),
    ("shiga", "滋賀"), ("kyoto", "京都"), ("osaka", "大阪"), ("hyogo", "兵庫"),
    ("nara", "奈良"), ("wakayama", "和歌山"), ("tottori", "鳥取"), ("shimane", "島根"),
    ("okayama", "岡山"), ("hiroshima", "広島"), ("yamaguchi", "山口"), ("tokushima", "徳島"),
    ("kagawa", "香川"), ("ehime", "愛媛"), ("kochi", "高知"), ("fukuoka", "福岡"),
    ("saga", "佐賀"), ("nagasaki", "長崎"), ("kumamoto", "熊本"), ("oita", "大分"),
    ("miyazaki", "宮崎"), ("kagoshima", "鹿児島"), ("okinawa", "沖縄"),
]

PREFECTURE_BY_CODE: Dict[str, str] = {
    f"{index:02d}": romaji for index, (romaji, _) in enumerate(PREFECTURES, start=1)
}
PREFECTURE_BY_NAME: Dict[str, str] = {kanji: romaji for romaji, kanji in PREFECTURES}
PREFECTURE_KEYS = frozenset(romaji for romaji, _ in PREFECTURES)

_CODE_PATTERN = re.compile(r"^(?:JP-?)?(\d{1,2})$", re.IGNORECASE)
_ROMAJI_SUFFIX = re.compile(r"[\s_-]*(prefecture|ken|to|fu)$")


def normalize_prefecture(value: Optional[str]) -> Optional[str]:
    """
    Normalize a province code or prefecture name to its romaji key

    Accepts "JP-13", "13", "Tokyo", "tokyo-to", "東京都".

    Args:
        value: Raw province code or name

    Returns:
        Romaji key (e.g. "tokyo"), or None if unknown
    """
    if not value or not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    code_match = _CODE_PATTERN.match(text)
    if code_match:
        return PREFECTURE_BY_CODE.get(f"{int(code_match.group(1)):02d}")

    if text in PREFECTURE_BY_NAME:
        return PREFECTURE_BY_NAME[text]
    if text[-1] in "都府県" and text[:-1] in PREFECTURE_BY_NAME:
        return PREFECTURE_BY_NAME[text[:-1]]

    lowered = text.lower()
    if lowered in PREFECTURE_KEYS:
        return lowered
    stripped = _ROMAJI_SUFFIX.sub("", lowered).replace("ō", "o").replace("ū", "u")
    if stripped in PREFECTURE_KEYS:
        return stripped

    return None


def resolve_prefecture(address: Optional[ShippingAddress]) -> Optional[str]:
    """Resolve the prefecture of a shipping address, province code first"""
    if address is None:
        return None

    prefecture = normalize_prefecture(address.province_code) or normalize_prefecture(address.province)
    if prefecture is None:
        logger.debug(
            f"Unresolvable prefecture: code={address.province_code}, province={address.province}"
        )
    return prefecture
