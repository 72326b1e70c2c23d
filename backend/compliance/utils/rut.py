"""Chilean RUT helpers.

A RUT is a body of digits plus a verification character (``0-9`` or ``K``)
computed with the modulo-11 algorithm. Stored RUTs are always in the
canonical ``12.345.678-5`` form so duplicates are detected regardless of how
they were typed.
"""

import re

_MULTIPLIERS = (2, 3, 4, 5, 6, 7)
_SHAPE = re.compile(r"^\d{1,8}[0-9K]$")


def clean_rut(rut: str) -> str:
    return re.sub(r"[^0-9kK]", "", rut or "").upper()


def compute_check_digit(body: str) -> str:
    total = 0
    for i, digit in enumerate(reversed(body)):
        total += int(digit) * _MULTIPLIERS[i % len(_MULTIPLIERS)]
    remainder = 11 - (total % 11)
    if remainder == 11:
        return "0"
    if remainder == 10:
        return "K"
    return str(remainder)


def is_well_formed(rut: str) -> bool:
    return bool(_SHAPE.match(clean_rut(rut)))


def is_valid_rut(rut: str) -> bool:
    cleaned = clean_rut(rut)
    if not _SHAPE.match(cleaned):
        return False
    return compute_check_digit(cleaned[:-1]) == cleaned[-1]


def format_rut(rut: str) -> str:
    cleaned = clean_rut(rut)
    if len(cleaned) <= 1:
        return cleaned
    body, dv = cleaned[:-1], cleaned[-1]
    body = body.lstrip("0") or "0"
    groups = []
    while len(body) > 3:
        groups.insert(0, body[-3:])
        body = body[:-3]
    groups.insert(0, body)
    return f"{'.'.join(groups)}-{dv}"
