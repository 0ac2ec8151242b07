from .attachment import Attachment, RealEstateProperty
from .image_data import SizeClass, ThumbnailResult
from .lead import CaptureResult, Lead, LeadCaptureForm

__all__ = [
    "Attachment",
    "RealEstateProperty",
    "SizeClass",
    "ThumbnailResult",
    "CaptureResult",
    "Lead",
    "LeadCaptureForm",
]
