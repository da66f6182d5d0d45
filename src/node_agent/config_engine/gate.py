"""Convergence gate deciding whether a reconciliation pass can be skipped."""
from typing import Optional


def should_skip(node_checksum: Optional[str], desired_checksum: Optional[str]) -> bool:
    """
    Check whether the node already runs the desired configuration.

    Both checksums are taken over the raw configuration bytes, so any byte
    level change forces a pass even if it does not alter the parsed
    configuration. A missing checksum on either side never skips.
    """
    if not node_checksum or not desired_checksum:
        return False
    return node_checksum == desired_checksum
