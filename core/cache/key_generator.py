"""
Cache key generation utilities for Slotwise.

This module provides functions to generate and manage cache keys.
"""

import hashlib
import json


def secure_hash(data, length=16, used_for_security=False):
    """
    Create a hash of data using SHA-256

    Args:
        data: String or bytes to hash
        length: Length of the resulting hash digest to return (truncated)
        used_for_security: Whether this hash is used for security purposes

    Returns:
        Truncated hexadecimal digest
    """
    if isinstance(data, str):
        data = data.encode()

    hash_func = hashlib.sha256(data, usedforsecurity=used_for_security)
    return hash_func.hexdigest()[:length]


def generate_cache_key(key, namespace=None, version=None):
    """
    Generate a standardized cache key.

    Args:
        key (str | dict): Base cache key; dictionaries are hashed
        namespace (str): Optional namespace
        version (str): Optional version

    Returns:
        str: Formatted cache key
    """
    if isinstance(key, dict):
        # Sort the dictionary to ensure consistent keys
        serialized = json.dumps(key, sort_keys=True, default=str)
        key = secure_hash(serialized.encode())

    parts = []
    if namespace:
        parts.append(namespace)

    parts.append(str(key))

    if version:
        parts.append(f"v{version}")

    return ":".join(parts)

