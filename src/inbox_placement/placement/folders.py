"""Map provider folder names to normalized placement categories."""

from collections.abc import Mapping

from inbox_placement.models import FolderCategory

DEFAULT_FOLDER_MAPS: dict[str, dict[str, FolderCategory]] = {
    "gmail": {
        "INBOX": FolderCategory.INBOX,
        "[Gmail]/Spam": FolderCategory.SPAM,
        "[Gmail]/All Mail": FolderCategory.ALL_MAIL,
    },
    "outlook": {
        "INBOX": FolderCategory.INBOX,
        "Junk Email": FolderCategory.SPAM,
        "Junk": FolderCategory.SPAM,
        "Clutter": FolderCategory.PROMOTIONS,
    },
}


def resolve_folder(
    provider: str,
    folder: str,
    folder_map: Mapping[str, FolderCategory] | None = None,
) -> FolderCategory:
    """Resolve a raw IMAP folder name to a ``FolderCategory``.

    Exact names are tried first, then a case-insensitive match (IMAP
    treats ``INBOX`` case-insensitively). Anything unmapped is ``other``
    so an unexpected folder layout never aborts a check.

    Args:
        provider: Provider key, e.g. ``"gmail"``.
        folder: Folder name as used on the wire.
        folder_map: Optional override; defaults to the built-in provider map.
    """
    mapping = folder_map if folder_map is not None else DEFAULT_FOLDER_MAPS.get(provider, {})
    name = folder.replace('"', "").strip()

    if name in mapping:
        return FolderCategory(mapping[name])

    lowered = name.lower()
    for raw, category in mapping.items():
        if raw.lower() == lowered:
            return FolderCategory(category)

    if lowered == "inbox":
        return FolderCategory.INBOX
    return FolderCategory.OTHER
