"""Mapping of local directory names onto remote URL paths."""


def append_url_path_segment(base_url: str, segment: str) -> str:
    """
    Append one path segment to a URL and return it directory-shaped.

    A "/" is inserted when ``base_url`` does not already end with one, and the
    result always ends with "/", so a file name can be concatenated directly.

    Args:
        base_url: Remote location of the parent directory
        segment: Local directory name, used as-is (no escaping)

    Returns:
        Remote location of the child directory
    """
    result = base_url
    if not base_url.endswith("/"):
        result += "/"
    return result + segment + "/"
