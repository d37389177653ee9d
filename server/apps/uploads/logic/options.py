"""Input types for the upload pipeline."""

from dataclasses import dataclass, field

from django.db import models


class UploadType(models.TextChoices):
    """Usage context of an upload."""

    AVATAR = 'avatar', 'Avatar'
    COMPOSER = 'composer', 'Composer'
    CUSTOM_EMOJI = 'custom_emoji', 'Custom emoji'
    PROFILE_BACKGROUND = 'profile_background', 'Profile background'
    CARD_BACKGROUND = 'card_background', 'Card background'


@dataclass(frozen=True, slots=True)
class ProcessingOptions:
    """Flags that steer validation, transformation and access policy."""

    for_site_setting: bool = False
    for_theme: bool = False
    for_private_message: bool = False
    pasted: bool = False
    force_optimize: bool = False
    type: str | None = None

    @property
    def for_admin_context(self) -> bool:
        """Whether administrator-level overrides apply."""
        return self.for_site_setting or self.for_theme


@dataclass(frozen=True, slots=True)
class UploadRequest:
    """Immutable bundle of everything a single upload needs.

    Attributes:
        content: Raw bytes as received from the client.
        filename: Declared filename, possibly wrong or dirty.
        user_id: ID of the requesting user.
        options: Processing options.
    """

    content: bytes
    filename: str
    user_id: int
    options: ProcessingOptions = field(default_factory=ProcessingOptions)
