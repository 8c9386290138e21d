"""
Secret detection for displaying captured environments.

A value is masked when its key names a credential, when it carries a known
secret or encryption prefix, or when its entropy is high enough to look
random.
"""

import math


SECRET_KEY_HINTS = (
    "SECRET",
    "PASSWORD",
    "PASSWD",
    "TOKEN",
    "API_KEY",
    "APIKEY",
    "PRIVATE_KEY",
    "CREDENTIAL",
)

# Sensitive value prefixes
SECRET_PREFIXES = [
    'sk_',      # Stripe, OpenAI, etc.
    'AKIA',     # AWS Access Key ID
    'ASIA',     # AWS temporary Access Key ID
    'ghp_',     # GitHub Personal Access Token
    'gho_',     # GitHub OAuth Token
    'xoxb-',    # Slack bot token
]

# Values already encrypted by KMS or a secrets tool
ENCRYPTED_PREFIXES = [
    'AQICAH',   # KMS ciphertext blob, base64
    'encrypted:',
    'ENC[',
    'vault:',
]

ENTROPY_THRESHOLD = 4.5
MASK = "********"


def calculate_entropy(value: str) -> float:
    """
    Calculate Shannon entropy of a string.

    Returns:
        Entropy value (bits per character)
    """
    if not value:
        return 0.0

    freq = {}
    for char in value:
        freq[char] = freq.get(char, 0) + 1

    entropy = 0.0
    length = len(value)
    for count in freq.values():
        probability = count / length
        entropy -= probability * math.log2(probability)

    return entropy


def is_secret_key(key: str) -> bool:
    upper = key.upper()
    return any(hint in upper for hint in SECRET_KEY_HINTS)


def is_secret_value(value: str) -> bool:
    if not value:
        return False

    if any(value.startswith(prefix) for prefix in SECRET_PREFIXES + ENCRYPTED_PREFIXES):
        return True

    return calculate_entropy(value) > ENTROPY_THRESHOLD


def mask_value(key: str, value: str) -> str:
    """
    Return ``value`` for display, masked if it looks sensitive.

    Multi-line values are shown with escaped newlines.
    """
    if is_secret_key(key) or is_secret_value(value):
        return MASK
    return value.replace("\n", "\\n")
