"""
IBAN helpers (ISO 13616).

Joint accounts are identified towards the outside world by a German-format
IBAN: "DE" + 2 check digits + 8-digit bank code + 10-digit account number.
Recipient IBANs submitted with transfers may come from any country and are
validated with the generic mod-97 check.
"""

import re

_IBAN_RE = re.compile(r"^[A-Z]{2}\d{2}[A-Z0-9]{11,30}$")


def _mod_97(sequence: str) -> int:
    remainder = 0
    for char in sequence:
        if char.isdigit():
            remainder = (remainder * 10 + int(char)) % 97
        else:
            remainder = (remainder * 100 + (ord(char) - 55)) % 97
    return remainder


def normalize_iban(raw: str) -> str:
    """Strip whitespace and upper-case an IBAN as typed by a user."""
    return re.sub(r"\s+", "", raw).upper()


def is_valid_iban(raw: str) -> bool:
    """True when `raw` is well-formed and passes the mod-97 checksum."""
    iban = normalize_iban(raw)
    if not _IBAN_RE.match(iban):
        return False
    return _mod_97(iban[4:] + iban[:4]) == 1


def build_iban(bank_code: str, account_number: str, country: str = "DE") -> str:
    """
    Compose an IBAN from a bank code and account number.

    The check digits are chosen so that the rearranged number is congruent
    to 1 modulo 97.
    """
    bban = f"{bank_code}{account_number}"
    remainder = _mod_97(bban + country + "00")
    return f"{country}{98 - remainder:02d}{bban}"
