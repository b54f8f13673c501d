"""Built-in category catalog and classification rules."""

from __future__ import annotations

from typing import Optional

UNCATEGORIZED = "uncategorized"

# (name, parent name, productivity score); parents are listed before children.
BUILTIN_CATEGORIES: tuple[tuple[str, Optional[str], int], ...] = (
    ("work", None, 1),
    ("work/coding", "work", 2),
    ("work/terminal", "work", 2),
    ("work/ai-tools", "work", 2),
    ("work/devops", "work", 2),
    ("work/documentation", "work", 1),
    ("work/review", "work", 1),
    ("reference", None, 1),
    ("reference/docs", "reference", 1),
    ("communication", None, 0),
    ("communication/chat", "communication", 0),
    ("communication/email", "communication", 0),
    ("productivity", None, 1),
    ("productivity/reading", "productivity", 1),
    ("productivity/finance", "productivity", 0),
    ("entertainment", None, -1),
    ("entertainment/video", "entertainment", -1),
    ("entertainment/social", "entertainment", -2),
    ("entertainment/music", "entertainment", 0),
    (UNCATEGORIZED, None, 0),
)

# (category name, field, pattern)
BUILTIN_RULES: tuple[tuple[str, str, str], ...] = (
    ("work/coding", "app", "Code"),
    ("work/coding", "app", "Visual Studio Code"),
    ("work/coding", "app", "PyCharm"),
    ("work/coding", "app", "Xcode"),
    ("work/coding", "app", "Zed"),
    ("work/terminal", "app", "Terminal"),
    ("work/terminal", "app", "iTerm2"),
    ("work/terminal", "app", "Warp"),
    ("work/ai-tools", "app", "Claude Code"),
    ("work/ai-tools", "url_domain", "claude.ai"),
    ("work/ai-tools", "url_domain", "chatgpt.com"),
    ("work/devops", "app", "Docker Desktop"),
    ("work/documentation", "app", "Notion"),
    ("work/documentation", "app", "Obsidian"),
    ("reference/docs", "url_domain", "github.com"),
    ("reference/docs", "url_domain", "stackoverflow.com"),
    ("reference/docs", "url_domain", "docs.python.org"),
    ("reference/docs", "url_domain", "developer.mozilla.org"),
    ("communication/chat", "app", "Slack"),
    ("communication/chat", "app", "Discord"),
    ("communication/chat", "app", "Messages"),
    ("communication/email", "app", "Mail"),
    ("communication/email", "url_domain", "mail.google.com"),
    ("productivity/reading", "app", "Preview"),
    ("entertainment/video", "url_domain", "www.youtube.com"),
    ("entertainment/video", "url_domain", "youtube.com"),
    ("entertainment/video", "url_domain", "www.netflix.com"),
    ("entertainment/video", "url_domain", "www.twitch.tv"),
    ("entertainment/social", "url_domain", "x.com"),
    ("entertainment/social", "url_domain", "twitter.com"),
    ("entertainment/social", "url_domain", "www.reddit.com"),
    ("entertainment/social", "url_domain", "www.instagram.com"),
    ("entertainment/music", "app", "Spotify"),
    ("entertainment/music", "app", "Music"),
)
