"""Upload pipeline policy settings."""

from server.settings.components import config

# Allow-list, pipe separated ('jpg|png|pdf'); '*' allows everything
UPLOADS_AUTHORIZED_EXTENSIONS = config(
    'UPLOADS_AUTHORIZED_EXTENSIONS',
    default='jpg|jpeg|png|gif',
)

# Size ceilings
UPLOADS_MAX_IMAGE_SIZE_KB = config(
    'UPLOADS_MAX_IMAGE_SIZE_KB', cast=int, default=4096,
)
UPLOADS_MAX_ATTACHMENT_SIZE_KB = config(
    'UPLOADS_MAX_ATTACHMENT_SIZE_KB', cast=int, default=4096,
)
UPLOADS_MAX_IMAGE_MEGAPIXELS = config(
    'UPLOADS_MAX_IMAGE_MEGAPIXELS', cast=int, default=40,
)

# Image optimization
UPLOADS_QUANTIZE_PNG = config('UPLOADS_QUANTIZE_PNG', cast=bool, default=True)
UPLOADS_PNG_TO_JPG_QUALITY = config(
    'UPLOADS_PNG_TO_JPG_QUALITY', cast=int, default=95,
)
UPLOADS_JPEG_MIN_SAVINGS_PERCENT = config(
    'UPLOADS_JPEG_MIN_SAVINGS_PERCENT', cast=int, default=15,
)
UPLOADS_JPEG_MIN_SAVINGS_BYTES = config(
    'UPLOADS_JPEG_MIN_SAVINGS_BYTES', cast=int, default=25000,
)
UPLOADS_JPEG_MIN_PIXELS = config(
    'UPLOADS_JPEG_MIN_PIXELS', cast=int, default=1280 * 720,
)

# Crop targets per upload type: (width, height, mode)
UPLOADS_CROP_TARGETS = {
    'avatar': (240, 240, 'fill'),
    'custom_emoji': (100, 100, 'contain'),
    'profile_background': (850, 850, 'contain'),
    'card_background': (590, 590, 'contain'),
}

# Access policy
UPLOADS_SECURE_MEDIA = config('UPLOADS_SECURE_MEDIA', cast=bool, default=False)
UPLOADS_LOGIN_REQUIRED = config(
    'UPLOADS_LOGIN_REQUIRED', cast=bool, default=False,
)
UPLOADS_PREVENT_ANONS_FROM_DOWNLOADING_FILES = config(
    'UPLOADS_PREVENT_ANONS_FROM_DOWNLOADING_FILES', cast=bool, default=False,
)
