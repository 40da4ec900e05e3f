import logging
import cloudinary
import cloudinary.uploader

from vivento import config

logger = logging.getLogger("uvicorn.error")

_configured = False


def _configure():
    global _configured
    if not _configured:
        cloudinary.config(
            cloud_name=config.CLOUDINARY_CLOUD_NAME,
            api_key=config.CLOUDINARY_API_KEY,
            api_secret=config.CLOUDINARY_API_SECRET,
            secure=True,
        )
        _configured = True


def store_image(value, folder):
    """Upload a data: URI image to Cloudinary and return its URL.

    URLs, and anything at all when Cloudinary isn't configured, are stored as given.
    """
    if not value or not value.startswith("data:image/") or not config.cloudinary_configured():
        return value

    _configure()
    try:
        upload_result = cloudinary.uploader.upload(value, folder=f"vivento/{folder}")
    except Exception as e:
        logger.error(f"Image upload to {folder} failed: {e}")
        return value

    url = upload_result.get("secure_url")
    if not url:
        logger.error("Image upload to %s returned no secure_url", folder)
        return value
    return url
