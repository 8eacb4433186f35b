"""Username sources for UIO9.

One profile check per platform.  Each platform's ``pattern`` captures the
handle from the profile URL, so values the platform could not host (for
example a dot in a Twitter handle) are skipped without a request.
"""

from __future__ import annotations

from typing import List, Optional

from uio9.core.data_models import Attribute, Confidence
from uio9.core.governor import AdmissionGovernor
from uio9.core.http_client import AsyncHTTPClient
from uio9.sources.base import ProfileAdapter, Target

_TITLE = "{label} Profile: {value}"
_DESCRIPTION = "{label} account found with username {value}"


def default_platform_targets() -> List[Target]:
    """Return the built-in set of public profile endpoints."""

    return [
        Target(
            name="github",
            label="GitHub",
            url_template="https://github.com/{value}",
            pattern=r"github\.com/([a-zA-Z0-9_-]+)",
            confidence=Confidence.HIGH,
            title_template=_TITLE,
            description_template=_DESCRIPTION,
            last_seen="Active",
        ),
        Target(
            name="twitter",
            label="Twitter",
            url_template="https://twitter.com/{value}",
            pattern=r"twitter\.com/([a-zA-Z0-9_]+)",
            negative_markers=("This account doesn’t exist",),
            confidence=Confidence.HIGH,
            title_template=_TITLE,
            description_template=_DESCRIPTION,
            last_seen="Active",
        ),
        Target(
            name="instagram",
            label="Instagram",
            url_template="https://instagram.com/{value}",
            pattern=r"instagram\.com/([a-zA-Z0-9_.]+)",
            negative_markers=("Sorry, this page isn't available.",),
            confidence=Confidence.HIGH,
            title_template=_TITLE,
            description_template=_DESCRIPTION,
            last_seen="Active",
        ),
        Target(
            name="reddit",
            label="Reddit",
            url_template="https://reddit.com/user/{value}",
            pattern=r"reddit\.com/user/([a-zA-Z0-9_-]+)",
            negative_markers=("Sorry, nobody on Reddit goes by that name.",),
            confidence=Confidence.HIGH,
            title_template=_TITLE,
            description_template=_DESCRIPTION,
            last_seen="Active",
        ),
        Target(
            name="tiktok",
            label="TikTok",
            url_template="https://tiktok.com/@{value}",
            pattern=r"tiktok\.com/@([a-zA-Z0-9_.]+)",
            negative_markers=("Couldn't find this account",),
            confidence=Confidence.HIGH,
            title_template=_TITLE,
            description_template=_DESCRIPTION,
            last_seen="Active",
        ),
    ]


def build_username_adapters(
    client: AsyncHTTPClient, governor: AdmissionGovernor, targets: Optional[List[Target]] = None
) -> List[ProfileAdapter]:
    targets = default_platform_targets() if targets is None else targets
    return [ProfileAdapter(target, Attribute.USERNAME, client, governor) for target in targets]
