"""
Filename and embedded metadata analysis
"""

import logging
import numbers
import re

from PIL import ExifTags

logger = logging.getLogger(__name__)

CAMERA_MODELS = [
    'canon', 'nikon', 'sony', 'fuji', 'olympus', 'panasonic', 'leica',
    'pentax', 'samsung', 'iphone',
]
EXTRA_CAMERA_MODELS = ['pixel', 'huawei', 'dslr', 'mirrorless']

PHOTO_TERMS = [
    'photo', 'pic', 'img', 'image', 'dsc', 'dcim', 'jpg', 'jpeg', 'raw',
    'cr2', 'nef', 'arw',
]
EXTRA_PHOTO_TERMS = ['portrait', 'shot', 'capture']

STUDIO_TERMS = ['studio', 'portrait', 'headshot', 'professional']
OUTDOOR_TERMS = ['outdoor', 'nature', 'landscape', 'travel', 'beach', 'mountain', 'park']

AI_TERMS = ['ai', 'generated', 'midjourney', 'dalle', 'stable diffusion', 'artificial', 'synthetic']
EXTRA_AI_TERMS = ['gpt', 'ml', 'gan']

PHOTO_FORMATS = ['jpg', 'jpeg', 'raw', 'cr2', 'nef', 'arw', 'dng', 'tiff']

PHOTO_PATTERN = re.compile(r'^(img|dsc|dcim|p\d+|dji)_\d+\.(jpg|jpeg|png|raw|cr2|nef|arw)$', re.IGNORECASE)

REAL_WORLD_BRANDS = [
    'samsung', 'apple', 'nike', 'adidas', 'coca-cola', 'pepsi', 'microsoft',
    'google', 'amazon', 'facebook', 'instagram', 'twitter', 'sony', 'lg',
    'toyota', 'honda', 'bmw', 'mercedes', 'ford', 'chevrolet', 'mcdonalds',
    'starbucks', 'walmart', 'target', 'disney', 'netflix', 'spotify', 'canon',
    'nikon', 'gopro',
]

# Generator names found in EXIF fields or PNG text chunks
AI_SIGNATURES = [
    'midjourney', 'dall-e', 'dalle', 'stable diffusion', 'stablediffusion',
    'openai', 'discord', 'artificial', 'generated', 'synthetic', 'runway',
    'leonardo.ai', 'firefly', 'adobe firefly', 'novelai', 'comfyui',
    'automatic1111',
]

# PNG text keys written by common diffusion front ends
AI_TEXT_CHUNKS = ['parameters', 'prompt', 'workflow', 'negative_prompt', 'sd-metadata', 'dream']

EXIF_IFD = 0x8769
SHORT_TERM_LENGTH = 3


def _tokens(filename):
    return set(re.split(r'[^a-z0-9]+', filename.lower()))


def contains_term(filename, term, short_as_token=False):
    """Substring match; with short_as_token, terms like "ai" must be a whole token"""
    lower = filename.lower()
    if short_as_token and len(term) <= SHORT_TERM_LENGTH and term.isalnum():
        return term in _tokens(lower)
    return term in lower


def _any_term(filename, terms, short_as_token=False):
    return any(contains_term(filename, term, short_as_token) for term in terms)


def has_camera_indicator(filename):
    return _any_term(filename, CAMERA_MODELS)


def has_studio_indicator(filename):
    return _any_term(filename, STUDIO_TERMS)


def has_outdoor_indicator(filename):
    return _any_term(filename, OUTDOOR_TERMS)


def has_ai_style_indicator(filename):
    return _any_term(filename, AI_TERMS, short_as_token=True)


def detect_brand_in_filename(filename):
    """First real-world brand named in the filename, or None"""
    for brand in REAL_WORLD_BRANDS:
        if contains_term(filename, brand, short_as_token=True):
            return brand
    return None


def analyze_metadata_indicators(filename):
    has_camera = has_camera_indicator(filename)
    has_photo = _any_term(filename, PHOTO_TERMS)
    has_studio = has_studio_indicator(filename)
    has_outdoor = has_outdoor_indicator(filename)
    has_ai = has_ai_style_indicator(filename)
    has_pattern = bool(PHOTO_PATTERN.match(filename.lower()))

    likely_real = (has_camera or has_photo or has_studio or has_outdoor or has_pattern) and not has_ai

    confidence = 50
    confidence += 20 if has_camera else 0
    confidence += 10 if has_photo else 0
    confidence += 15 if has_studio else 0
    confidence += 15 if has_outdoor else 0
    confidence += 20 if has_pattern else 0
    confidence -= 50 if has_ai else 0

    return {
        'isLikelyRealPhoto': likely_real,
        'confidence': max(0, min(100, confidence)),
        'hasCameraModel': has_camera,
        'hasPhotoTerms': has_photo,
        'hasStudioTerms': has_studio,
        'hasOutdoorTerms': has_outdoor,
        'hasPhotoPattern': has_pattern,
        'hasAiTerms': has_ai,
    }


def analyze_enhanced_metadata_indicators(filename):
    """Broader term lists than analyze_metadata_indicators, used by the enhanced classifier"""
    has_camera = _any_term(filename, CAMERA_MODELS + EXTRA_CAMERA_MODELS)
    has_photo = _any_term(filename, PHOTO_TERMS + EXTRA_PHOTO_TERMS)
    has_ai = _any_term(filename, AI_TERMS + EXTRA_AI_TERMS, short_as_token=True)
    has_pattern = bool(PHOTO_PATTERN.match(filename.lower()))

    confidence = 50
    confidence += 25 if has_camera else 0
    confidence += 15 if has_photo else 0
    confidence += 25 if has_pattern else 0
    confidence -= 50 if has_ai else 0

    return {
        'isLikelyRealPhoto': (has_camera or has_photo or has_pattern) and not has_ai,
        'confidence': max(0, min(100, confidence)),
        'hasCameraModel': has_camera,
        'hasPhotoTerms': has_photo,
        'hasPhotoPattern': has_pattern,
        'hasAiTerms': has_ai,
    }


def analyze_metadata_consistency(filename):
    """A camera model plus a camera file format, without AI terms"""
    lower = filename.lower()

    camera_model = next((m for m in CAMERA_MODELS if contains_term(filename, m)), None)
    photo_format = next((f for f in PHOTO_FORMATS if lower.endswith('.' + f)), None)
    has_ai = has_ai_style_indicator(filename)

    confidence = 0.5
    confidence += 0.2 if camera_model else 0
    confidence += 0.1 if photo_format else 0
    confidence -= 0.5 if has_ai else 0

    return {
        'hasConsistentMetadata': bool(camera_model and photo_format and not has_ai),
        'confidence': max(0.0, min(1.0, confidence)),
        'hasCameraModel': camera_model is not None,
        'cameraModel': camera_model,
        'hasPhotoFormat': photo_format is not None,
        'photoFormat': photo_format,
        'hasAIIndicators': has_ai,
    }


def _json_value(value):
    if isinstance(value, str):
        return value.strip('\x00').strip()
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, numbers.Number):
        return float(value)
    return None


def _find_signature(text):
    text = text.lower()
    for signature in AI_SIGNATURES:
        if signature in text:
            return signature
    return None


def extract_exif_data(image):
    """
    Read EXIF tags and PNG text chunks from a decoded PIL image and look
    for generator signatures in them.
    """
    raw = {}

    exif = image.getexif()
    for tag_id, value in exif.items():
        value = _json_value(value)
        if value is not None:
            raw[ExifTags.TAGS.get(tag_id, str(tag_id))] = value

    try:
        for tag_id, value in exif.get_ifd(EXIF_IFD).items():
            value = _json_value(value)
            if value is not None:
                raw[ExifTags.TAGS.get(tag_id, str(tag_id))] = value
    except (KeyError, ValueError, TypeError) as e:
        logger.debug("Could not read EXIF sub-IFD: %s", e)

    text_chunks = {
        key: value for key, value in (image.info or {}).items()
        if isinstance(value, str) and key.lower() not in ('exif', 'icc_profile')
    }

    all_text = ' '.join(f"{k}:{v}" for k, v in raw.items())
    all_text += ' ' + ' '.join(f"{k}:{v}" for k, v in text_chunks.items())

    ai_signature = _find_signature(all_text)
    ai_chunks = [key for key in text_chunks if key.lower() in AI_TEXT_CHUNKS]
    if ai_signature is None and ai_chunks:
        ai_signature = ai_chunks[0]

    has_exif = bool(raw)
    make = raw.get('Make')
    model = raw.get('Model')
    lens = raw.get('LensModel')

    if not has_exif:
        confidence = 0.8
    else:
        confidence = 0.9

    return {
        'hasExifData': has_exif,
        'confidence': confidence,
        'rawData': raw or None,
        'cameraBrand': make or None,
        'cameraModel': model or None,
        'lensInfo': lens or None,
        'software': raw.get('Software') or text_chunks.get('Software'),
        'textChunks': sorted(text_chunks),
        'hasAiSignature': ai_signature is not None,
        'aiSignature': ai_signature,
    }


def analyze_metadata(ctx):
    """Combine filename consistency and embedded metadata into one verdict"""
    consistency = analyze_metadata_consistency(ctx.filename)
    exif = extract_exif_data(ctx.source)

    details = []
    if consistency['hasConsistentMetadata']:
        details.append('consistent photographic metadata')
        details.append(f"camera model: {consistency['cameraModel']}")
        details.append(f"standard photo format: {consistency['photoFormat']}")
    else:
        if not consistency['hasCameraModel']:
            details.append('missing camera model information')
        if not consistency['hasPhotoFormat']:
            details.append('non-standard photo format')
        if consistency['hasAIIndicators']:
            details.append('file contains AI generation indicators')

    if exif['hasExifData']:
        details.append('contains EXIF metadata')
        if exif['cameraBrand']:
            details.append(f"camera brand: {exif['cameraBrand']}")
        if exif['lensInfo']:
            details.append(f"lens info: {exif['lensInfo']}")
    else:
        details.append('missing EXIF metadata')

    if exif['hasAiSignature']:
        details.append(f"AI generator signature in metadata: {exif['aiSignature']}")

    consistent = (consistency['hasConsistentMetadata'] or exif['hasExifData']) and not exif['hasAiSignature']

    return {
        'hasConsistentMetadata': consistent,
        'confidence': (consistency['confidence'] + exif['confidence']) / 2,
        'exifData': exif['rawData'],
        'cameraBrand': exif['cameraBrand'],
        'lensInfo': exif['lensInfo'],
        'hasAiSignature': exif['hasAiSignature'],
        'aiSignature': exif['aiSignature'],
        'details': details,
    }
