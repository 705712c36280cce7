"""
Validateurs spécifiques à la Tunisie
"""
import re


def validate_tunisia_phone(phone: str) -> bool:
    """
    Valide un numéro de téléphone tunisien.
    Formats valides:
    - +216XXXXXXXX (8 chiffres après +216)
    - 00216XXXXXXXX
    - XXXXXXXX (8 chiffres, commençant par 2, 3, 4, 5, 7 ou 9)
    """
    cleaned = re.sub(r'[\s\-\.\(\)]', '', phone)

    patterns = [
        r'^\+216[234579][0-9]{7}$',
        r'^00216[234579][0-9]{7}$',
        r'^[234579][0-9]{7}$',
    ]

    return any(re.match(pattern, cleaned) for pattern in patterns)


def format_tunisia_phone(phone: str) -> str:
    """
    Formate un numéro tunisien au format standard +216XXXXXXXX
    """
    if not validate_tunisia_phone(phone):
        return phone  # Retourne tel quel si invalide

    cleaned = re.sub(r'[\s\-\.\(\)]', '', phone)

    if cleaned.startswith('+216'):
        return cleaned
    elif cleaned.startswith('00216'):
        return '+' + cleaned[2:]
    return '+216' + cleaned
