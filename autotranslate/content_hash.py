import xxhash

# Changing either constant invalidates every hash stored in existing target files.
HASH_SEED = 0xABCD
FIELD_SEPARATOR = '|'


def calculate_hash(text: str, description: str = '') -> str:
    """
    Fingerprint a source string and its description.

    The result is the xxHash32 of ``text|description`` as 8 lowercase hex digits.
    Target files store this value to record which version of the source produced
    a translation.

    Args:
        text: The source-language text.
        description: The translator-facing description of the text.

    Returns:
        str: The zero-padded hexadecimal hash.
    """
    combined = f"{text}{FIELD_SEPARATOR}{description}"
    return xxhash.xxh32_hexdigest(combined.encode('utf-8'), seed=HASH_SEED)


def needs_translation(source_text: str, source_description: str, target_hash: str) -> bool:
    """Return True if a translation stored with ``target_hash`` is stale."""
    return calculate_hash(source_text, source_description) != target_hash
