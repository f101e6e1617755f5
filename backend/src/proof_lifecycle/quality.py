"""
Quality classifier - maps submitted evidence to a quality tier.
"""
from typing import Any, Mapping, Optional

from proof_lifecycle.models import QualityTier

# Description must be longer than this to count as detailed
DETAILED_DESCRIPTION_MIN_LENGTH = 50
COMPREHENSIVE_MIN_PHOTOS = 2
STANDARD_MIN_PHOTOS = 1


def classify(evidence: Optional[Mapping[str, Any]]) -> QualityTier:
    """
    Classify evidence into a quality tier.

    Rules (first match wins):
    - COMPREHENSIVE: before/after flag AND description > 50 chars AND 2+ photos
    - STANDARD: at least 1 photo
    - BASIC: default

    Args:
        evidence: Dict with optional 'description', 'photoUrls', 'hasBeforeAfter'.
                  Missing fields count as empty.

    Returns:
        QualityTier constant
    """
    evidence = evidence or {}
    description = evidence.get('description') or ''
    photo_count = len(evidence.get('photoUrls') or [])
    has_before_after = bool(evidence.get('hasBeforeAfter'))

    if (has_before_after
            and len(description) > DETAILED_DESCRIPTION_MIN_LENGTH
            and photo_count >= COMPREHENSIVE_MIN_PHOTOS):
        return QualityTier.COMPREHENSIVE
    elif photo_count >= STANDARD_MIN_PHOTOS:
        return QualityTier.STANDARD
    return QualityTier.BASIC
