"""Built-in detection patterns for the match engine.

Each entry: (name, pattern, priority, validator, transformer).  Priorities
run from 1000 down in steps of 10; the engine re-sorts by complexity
first, so priority only breaks ties.  Everything is compiled with
``re.ASCII``: ``\\d`` means ``[0-9]`` and ``\\b`` treats CJK text as
non-word characters.
"""

from __future__ import annotations
from typing import Callable

from . import strategies as st
from .validators import clean_id_card, is_valid_id_card, luhn_valid

# ── Kind names ───────────────────────────────────────────────────────

CHINESE_NAME = "chinese_name"
ID_CARD = "id_card"
PASSPORT = "passport"
SOCIAL_SECURITY = "social_security"
DRIVERS_LICENSE = "license_number"
MOBILE_PHONE = "mobile_phone"
FIXED_PHONE = "landline"
EMAIL = "email"
ADDRESS = "address"
POSTAL_CODE = "postal_code"
BANK_CARD = "bank_card"
CREDIT_CARD = "credit_card"
IPV4 = "ipv4"
IPV6 = "ipv6"
MAC = "mac"
IMEI = "imei"
LICENSE_PLATE = "plate"
VIN = "vin"
API_KEY = "api_key"
JWT = "jwt"
ACCESS_TOKEN = "access_token"
DEVICE_ID = "device_id"
UUID = "uuid"
MD5 = "md5"
SHA1 = "sha1"
SHA256 = "sha256"
LAT_LNG = "lat_lng"
URL = "url"
DOMAIN = "domain"
PASSWORD = "password"
USERNAME = "username"
MEDICAL_ID = "medical_id"
COMPANY_ID = "company_id"
IBAN = "iban"
SWIFT = "swift"
GIT_REPO = "git_repo"

# Tokens that name a rule rather than carry data; never masked.
RULE_NAMES = frozenset({
    "chinese_name", "id_card", "passport", "drivers_license", "nickname",
    "biography", "signature", "social_security",
    "mobile_phone", "landline", "email", "address",
    "bank_card", "credit_card", "username", "password",
    "ipv4", "ipv6", "mac", "device_id", "imei",
    "medical_id", "company_id", "postal_code",
    "plate", "vin",
    "jwt", "access_token", "refresh_token", "private_key", "public_key", "certificate",
    "comment", "coordinate",
    "url", "first_mask", "null", "empty",
})

MASK_MARKER = "****"

# ── Pattern sources ──────────────────────────────────────────────────

CHINESE_SURNAMES = (
    "艾安敖巴白班包暴鲍贝贲毕边卞别邴伯薄卜蔡曹岑柴昌常晁车陈成程池充仇储楚褚淳从崔"
    "戴党邓狄刁丁董窦杜端段鄂樊范方房费丰封冯凤伏扶符福傅甘高郜戈盖葛耿龚宫勾苟辜古"
    "谷顾关管桂郭国韩杭郝何和贺赫衡洪侯胡扈花华滑怀宦黄惠霍姬嵇吉汲籍计纪季贾简姜江"
    "蒋焦金靳荆井景居鞠阚康柯空孔寇蒯匡邝况赖蓝郎劳雷冷黎李利连廉练梁廖林蔺凌令刘柳"
    "龙隆娄卢鲁陆路逯禄吕栾罗骆麻马满毛茅梅蒙孟米宓闵明莫牟穆倪聂年宁牛钮农潘庞裴彭"
    "皮平蒲濮浦戚祁齐钱强乔谯秦邱裘曲屈瞿全阙冉饶任荣容阮芮桑沙山单商上邵佘申沈盛师"
    "施时石史寿殳舒束双水司松宋苏宿孙索邰太谈谭汤唐陶滕田通童涂屠万汪王危韦卫魏温文"
    "闻翁巫邬伍武务西席夏咸向项萧谢辛邢幸熊徐许轩宣薛荀闫严言阎颜晏燕杨姚叶伊易殷尹"
    "应庸雍尤游于余俞虞元袁岳云臧曾翟詹湛张章赵甄郑支钟仲周朱诸祝庄卓子宗邹祖左"
)

CHINESE_NAME_PATTERN = "[" + CHINESE_SURNAMES + "][一-龥]{1,5}"
ID_CARD_PATTERN = (
    r"(?<![0-9])[1-9]\d{5}(?:18|19|20)\d{2}(?:0[1-9]|1[0-2])"
    r"(?:0[1-9]|[12]\d|3[01])\d{3}[\dXx](?![0-9])"
)
PASSPORT_PATTERN = r"[a-zA-Z][0-9]{9}"
SOCIAL_SECURITY_PATTERN = r"[1-9]\d{17}[\dXx]"
DRIVERS_LICENSE_PATTERN = r"[1-9]\d{5}[a-zA-Z]\d{6}"

MOBILE_PHONE_PATTERN = (
    r"(?<![0-9])(?:(?:\+|00)86)?1(?:3\d|4[5-79]|5[0-35-9]|6[5-7]|7[0-8]|8\d|9[189])\d{8}(?![0-9])"
)
FIXED_PHONE_PATTERN = r"(?:\d{3,4}-)?\d{7,8}(?:-\d{1,4})?"
EMAIL_PATTERN = st.EMAIL_PATTERN

ADDRESS_PATTERN = (
    "[一-龥]{2,}(?:省|自治区|市|特别行政区|自治州)?"
    "[一-龥]{2,}(?:市|区|县|镇|村|街道|路|号楼|栋|单元|室)"
)
POSTAL_CODE_PATTERN = r"(?<![0-9])[1-9]\d{5}(?![0-9])"

BANK_CARD_PATTERN = (
    r"(?:4\d{12}(?:\d{3})?|5[1-5]\d{14}|6(?:011|5\d{2})\d{12}|3[47]\d{13}|(?:30[0-5]|36\d|38\d)\d{11})"
)
CREDIT_CARD_PATTERN = (
    r"(?:4[0-9]{12}(?:[0-9]{3})?|5[1-5][0-9]{14}|6(?:011|5[0-9][0-9])[0-9]{12}"
    r"|3[47][0-9]{13}|3(?:0[0-5]|[68][0-9])[0-9]{11}|(?:2131|1800|35\d{3})\d{11})"
)

IPV4_PATTERN = r"(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)"
IPV6_PATTERN = (
    r"(?:[0-9a-fA-F]{1,4}:){7}[0-9a-fA-F]{1,4}"
    r"|(?:[0-9a-fA-F]{1,4}:){1,7}:"
    r"|(?:[0-9a-fA-F]{1,4}:){1,6}:[0-9a-fA-F]{1,4}"
    r"|(?:[0-9a-fA-F]{1,4}:){1,5}(?::[0-9a-fA-F]{1,4}){1,2}"
    r"|(?:[0-9a-fA-F]{1,4}:){1,4}(?::[0-9a-fA-F]{1,4}){1,3}"
    r"|(?:[0-9a-fA-F]{1,4}:){1,3}(?::[0-9a-fA-F]{1,4}){1,4}"
    r"|(?:[0-9a-fA-F]{1,4}:){1,2}(?::[0-9a-fA-F]{1,4}){1,5}"
    r"|[0-9a-fA-F]{1,4}:(?::[0-9a-fA-F]{1,4}){1,6}"
    r"|:(?:(?::[0-9a-fA-F]{1,4}){1,7}|:)"
    r"|fe80:(?::[0-9a-fA-F]{0,4}){0,4}%[0-9a-zA-Z]+"
)
MAC_PATTERN = r"(?:[0-9A-Fa-f]{2}[:-]){5}[0-9A-Fa-f]{2}"
IMEI_PATTERN = r"\d{15,17}"

LICENSE_PLATE_PATTERN = (
    "[京津沪渝冀豫云辽黑湘皖鲁新苏浙赣鄂桂甘晋蒙陕吉闽贵粤青藏川宁琼使领]"
    "[A-Z][A-HJ-NP-Z0-9]{4,5}[A-HJ-NP-Z0-9挂学警港澳]"
)
VIN_PATTERN = r"[A-HJ-NPR-Z0-9]{17}"

API_KEY_PATTERN = r"[a-zA-Z0-9]{32,}"
JWT_PATTERN = r"eyJ[A-Za-z0-9\-_=]+\.[A-Za-z0-9\-_=]+\.?[A-Za-z0-9\-_.+/=]*"
ACCESS_TOKEN_PATTERN = r"[a-zA-Z0-9]{40,}"

DEVICE_ID_PATTERN = r"[A-F0-9]{8}-[A-F0-9]{4}-[A-F0-9]{4}-[A-F0-9]{4}-[A-F0-9]{12}"
UUID_PATTERN = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"

MD5_PATTERN = r"[a-fA-F0-9]{32}"
SHA1_PATTERN = r"[a-fA-F0-9]{40}"
SHA256_PATTERN = r"[a-fA-F0-9]{64}"

LAT_LNG_PATTERN = (
    r"[-+]?(?:[1-8]?\d(?:\.\d+)?|90(?:\.0+)?),\s*"
    r"[-+]?(?:180(?:\.0+)?|(?:1[0-7]\d|[1-9]?\d)(?:\.\d+)?)"
)

# Path body: one character or one balanced paren group per step.
URL_PATTERN = (
    r"\b[a-zA-Z]{1,6}://?(?:[^:@\s/]*:[^:@\s/]+@)?[a-zA-Z0-9.\-]+\."
    r"(?:[^\s()<>]|\([^\s()<>]*\))*[^\s!()\[\]{};:'\".,<>?]"
)
DOMAIN_PATTERN = r"(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z0-9][a-z0-9-]{0,61}[a-z0-9]"

PASSWORD_PATTERN = r"^[a-zA-Z]\w{5,17}$"
USERNAME_PATTERN = r"[a-zA-Z0-9_-]{3,16}"

MEDICAL_ID_PATTERN = r"[1-9]\d{7}"
COMPANY_ID_PATTERN = r"[1-9]\d{14}"

IBAN_PATTERN = r"[A-Z]{2}\d{2}[A-Z0-9]{4}\d{7}[A-Z0-9]{0,16}"
SWIFT_PATTERN = r"[A-Z]{6}[A-Z0-9]{2}(?:[A-Z0-9]{3})?"

GIT_REPO_PATTERN = r"(?:git|ssh|git@[\w.]+)(?::(?://)?)[\w.@:/\-~]+\.git/?"


def _valid_id_card(value: str) -> bool:
    return is_valid_id_card(clean_id_card(value))


def _company_id(value: str) -> str:
    if len(value) > 2:
        return "*" * (len(value) - 1) + value[-1]
    return "*" * len(value)


Validator = Callable[[str], bool]
Transformer = Callable[[str], str]

# (name, pattern, priority, validator, transformer)
DEFAULT_MATCHERS: list[tuple[str, str, int, Validator | None, Transformer]] = [
    (CHINESE_NAME, CHINESE_NAME_PATTERN, 1000, None, st.chinese_name),
    (ID_CARD, ID_CARD_PATTERN, 990, _valid_id_card, st.id_card),
    (PASSPORT, PASSPORT_PATTERN, 980, None, st.passport),
    (SOCIAL_SECURITY, SOCIAL_SECURITY_PATTERN, 970, None, st.social_security),
    (DRIVERS_LICENSE, DRIVERS_LICENSE_PATTERN, 960, None, st.license_number),
    (MOBILE_PHONE, MOBILE_PHONE_PATTERN, 950, None, st.mobile_phone),
    (FIXED_PHONE, FIXED_PHONE_PATTERN, 940, None, st.landline),
    (EMAIL, EMAIL_PATTERN, 930, None, st.email),
    (ADDRESS, ADDRESS_PATTERN, 920, None, st.address),
    (POSTAL_CODE, POSTAL_CODE_PATTERN, 910, None, st.postal_code),
    (BANK_CARD, BANK_CARD_PATTERN, 900, None, st.bank_card),
    (CREDIT_CARD, CREDIT_CARD_PATTERN, 890, luhn_valid, st.credit_card),
    (IPV4, IPV4_PATTERN, 880, None, st.ipv4),
    (IPV6, IPV6_PATTERN, 870, None, st.ipv6),
    (MAC, MAC_PATTERN, 860, None, st.mac),
    (IMEI, IMEI_PATTERN, 850, None, st.imei),
    (LICENSE_PLATE, LICENSE_PLATE_PATTERN, 840, None, st.plate),
    (VIN, VIN_PATTERN, 830, None, st.vin),
    (API_KEY, API_KEY_PATTERN, 820, None, st.api_key),
    (JWT, JWT_PATTERN, 810, None, st.jwt),
    (ACCESS_TOKEN, ACCESS_TOKEN_PATTERN, 800, None, st.access_token),
    (DEVICE_ID, DEVICE_ID_PATTERN, 790, None, st.device_id),
    (UUID, UUID_PATTERN, 780, None, st.uuid),
    (MD5, MD5_PATTERN, 770, None, st.md5),
    (SHA1, SHA1_PATTERN, 760, None, st.sha1),
    (SHA256, SHA256_PATTERN, 750, None, st.sha256),
    (LAT_LNG, LAT_LNG_PATTERN, 740, None, st.lat_lng),
    (URL, URL_PATTERN, 730, None, st.url),
    (DOMAIN, DOMAIN_PATTERN, 720, None, st.domain),
    (PASSWORD, PASSWORD_PATTERN, 710, None, st.password),
    (USERNAME, USERNAME_PATTERN, 700, None, st.username),
    (MEDICAL_ID, MEDICAL_ID_PATTERN, 690, None, st.medical_id),
    (COMPANY_ID, COMPANY_ID_PATTERN, 680, None, _company_id),
    (IBAN, IBAN_PATTERN, 670, None, st.iban),
    (SWIFT, SWIFT_PATTERN, 660, None, st.swift),
    (GIT_REPO, GIT_REPO_PATTERN, 650, None, st.git_repo),
]


def is_rule_name(text: str) -> bool:
    return text in RULE_NAMES
