"""Required keyword check for SiteWatcher."""

from typing import Optional


def apply_keyword_policy(is_online: bool, body: str, need_string: Optional[str]) -> bool:
    """Return the online verdict once the required keyword is checked.

    When a keyword is configured its presence replaces the verdict outright,
    so a page that answered with an error status but still contains the
    keyword counts as online. Without a keyword the verdict is unchanged.

    Args:
        is_online: Verdict from the status check
        body: Raw response body
        need_string: Substring the body must contain, or None

    Returns:
        The final online verdict
    """
    if need_string is None:
        return is_online

    return need_string in body
