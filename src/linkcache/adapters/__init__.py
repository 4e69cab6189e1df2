"""Browser adapters. Each extractor takes the config and returns Links."""

from . import arc, chrome, firefox

# Source tag -> extractor. The browser name (before the colon) is the
# config key under `sources`.
EXTRACTORS = {
    firefox.BOOKMARK_SOURCE: firefox.extract_bookmarks,
    firefox.HISTORY_SOURCE: firefox.extract_history,
    chrome.BOOKMARK_SOURCE: chrome.extract_bookmarks,
    chrome.HISTORY_SOURCE: chrome.extract_history,
    arc.SOURCE: arc.extract_bookmarks,
}

__all__ = [
    "EXTRACTORS",
    "arc",
    "chrome",
    "firefox",
]
