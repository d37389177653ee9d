"""Decide whether an upload must be served through secure access.

Two independent inputs feed the ``secure`` flag:

- the secure media rules, an ordered table where the first matching
  rule decides
- the attachment rule: non-image uploads (except theme assets) are
  secure whenever anonymous downloads are prevented

An upload is secure if either input says so.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Final

from server.apps.uploads.logic.options import ProcessingOptions, UploadType
from server.apps.uploads.logic.policy import UploadPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SecurityContext:
    """Facts the access rules look at."""

    options: ProcessingOptions
    policy: UploadPolicy
    is_image: bool


@dataclass(frozen=True, slots=True)
class SecureRule:
    """One row of the secure media decision table."""

    name: str
    matches: Callable[[SecurityContext], bool]
    secure: bool


# Evaluated top to bottom, first match wins
SECURE_MEDIA_RULES: Final = (
    SecureRule(
        'theme',
        lambda context: context.options.for_theme,
        secure=False,
    ),
    SecureRule(
        'site_setting',
        lambda context: context.options.for_site_setting,
        secure=False,
    ),
    SecureRule(
        'avatar',
        lambda context: context.options.type == UploadType.AVATAR,
        secure=False,
    ),
    SecureRule(
        'secure_media_disabled',
        lambda context: not context.policy.secure_media,
        secure=False,
    ),
    SecureRule(
        'private_message',
        lambda context: context.options.for_private_message,
        secure=True,
    ),
    # Placement of composer uploads (public or private) is not known yet
    SecureRule(
        'composer',
        lambda context: context.options.type == UploadType.COMPOSER,
        secure=True,
    ),
    SecureRule(
        'login_required',
        lambda context: context.policy.login_required,
        secure=True,
    ),
)


def secure_media_verdict(context: SecurityContext) -> tuple[bool, str]:
    """Evaluate the secure media decision table.

    Args:
        context: Facts about the upload.

    Returns:
        Verdict and the name of the deciding rule ('default' when no
        rule matched).
    """
    for rule in SECURE_MEDIA_RULES:
        if rule.matches(context):
            return rule.secure, rule.name
    return False, 'default'


def attachment_verdict(context: SecurityContext) -> bool:
    """Apply the anonymous download rule to non-image attachments.

    Args:
        context: Facts about the upload.

    Returns:
        True if the attachment must not be downloadable anonymously.
    """
    if context.is_image or context.options.for_theme:
        return False
    return context.policy.prevent_anons_from_downloading_files


def is_secure(
    options: ProcessingOptions,
    policy: UploadPolicy,
    is_image: bool,
) -> bool:
    """Classify an upload's access sensitivity.

    Args:
        options: Processing options of the request.
        policy: Policy snapshot.
        is_image: Whether the upload is handled as an image.

    Returns:
        True if access requires authentication or a signed URL.
    """
    context = SecurityContext(options=options, policy=policy, is_image=is_image)
    media_secure, rule_name = secure_media_verdict(context)
    attachment_secure = attachment_verdict(context)
    logger.debug(
        'Secure classification: media=%s (rule %s), attachment=%s',
        media_secure,
        rule_name,
        attachment_secure,
    )
    return media_secure or attachment_secure
