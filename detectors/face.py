"""
Human face analysis.
The largest Haar face is measured once per image (skin micro texture,
tone variation, eye detail, left/right asymmetry, surrounding colours) and
the measurements feed three views: a feature checklist, a real-vs-AI
accumulator, and the classifier's facial summary.
"""

import logging

import cv2
import numpy as np

from utils.image_processor import get_face_detector, largest_face

from . import metadata, natural
from .portrait import skin_mask
from .sampling import split_channels

logger = logging.getLogger(__name__)

NATURAL_ASYMMETRY = 40
PORE_RESIDUAL_STD = 1.5
SKIN_VARIATION = 12

# Weight sums of the real and AI accumulators in detect_real_human_face
REAL_WEIGHT_TOTAL = 5.1
AI_WEIGHT_TOTAL = 7.4


def _eye_details(face_gray, eyes):
    catchlights = 0
    iris_details = 0
    for ex, ey, ew, eh in eyes[:2]:
        eye = face_gray[ey:ey + eh, ex:ex + ew]
        if not eye.size:
            continue
        if eye.max() > 200:
            catchlights += 1
        if eye.min() < 60 and eye.std() > 20:
            iris_details += 1
    return catchlights, iris_details


def measure_face(ctx):
    """Measurements of the largest face, or None when no face is found"""

    def compute(ctx):
        faces = get_face_detector().detect(ctx.rgb)
        face = largest_face(faces)
        if face is None:
            return None

        x, y, w, h = face
        face_rgb = ctx.rgb_i[y:y + h, x:x + w]
        face_gray = ctx.gray[y:y + h, x:x + w]

        r, g, b = split_channels(face_rgb)
        skin = skin_mask(r, g, b)
        if skin.sum() < 10:
            skin = np.ones_like(skin)

        gray_f = face_gray.astype(np.float32)
        residual = np.abs(gray_f - cv2.GaussianBlur(gray_f, (5, 5), 0))
        residual_std = float(residual[skin].std())
        skin_variation = float(gray_f[skin].std())

        upper = face_gray[:max(1, int(h * 0.6))]
        eyes = get_face_detector().detect_eyes(upper)
        catchlights, iris_details = _eye_details(upper, eyes)

        eye_centers = sorted(ex + ew / 2.0 for ex, ey, ew, eh in eyes[:2])
        proportional = (
            len(eye_centers) == 2
            and 0.25 <= (eye_centers[1] - eye_centers[0]) / float(w) <= 0.6
        )

        half = w // 2
        left = gray_f[:, :half]
        right = np.fliplr(gray_f[:, w - half:])
        asymmetry_diff = float(np.abs(left - right).mean()) if half else 0.0

        # Saturated non-skin colour around the head (glows, magic, neon hair)
        pad_x, pad_y = w // 2, h // 2
        y1, y2 = max(0, y - pad_y), min(ctx.height, y + h + pad_y)
        x1, x2 = max(0, x - pad_x), min(ctx.width, x + w + pad_x)
        around_hsv = ctx.hsv[y1:y2, x1:x2]
        ar, ag, ab = split_channels(ctx.rgb_i[y1:y2, x1:x2])
        vivid = (around_hsv[:, :, 1] > 180) & (around_hsv[:, :, 2] > 150) & ~skin_mask(ar, ag, ab)
        fantasy_ratio = float(vivid.mean()) if vivid.size else 0.0

        mouth = face_gray[int(h * 0.65):]
        mouth_detail = float(cv2.Laplacian(mouth, cv2.CV_64F).var()) if mouth.size else 0.0

        return {
            'faceCount': len(faces),
            'faceBox': [x, y, w, h],
            'eyeCount': len(eyes),
            'skinTexture': min(100.0, residual_std * 25),
            'residualStd': residual_std,
            'skinVariation': skin_variation,
            'eyeScore': min(100, 30 + 15 * min(len(eyes), 2) + 10 * catchlights + 10 * iris_details),
            'catchlights': catchlights,
            'irisDetails': iris_details,
            'hasNaturalProportions': proportional,
            'asymmetry': min(100.0, asymmetry_diff * 5),
            'fantasyScore': min(100.0, fantasy_ratio * 300),
            'mouthDetail': mouth_detail,
        }

    return ctx.derived('face_measurements', compute)


def _no_face(**extra):
    result = {'hasFace': False, 'faceCount': 0, 'confidence': 0}
    result.update(extra)
    return result


def analyze_human_face(ctx):
    m = measure_face(ctx)
    if m is None:
        return _no_face(isRealHuman=False, naturalFeatures=[], artificialFeatures=[])

    checks = [
        (m['asymmetry'] > NATURAL_ASYMMETRY, 'natural facial asymmetry', 'unnatural facial symmetry'),
        (m['residualStd'] > PORE_RESIDUAL_STD, 'natural skin pores', 'missing skin pores'),
        (m['skinVariation'] > SKIN_VARIATION, 'natural skin variations', 'unnaturally perfect skin'),
        (m['hasNaturalProportions'], 'natural facial proportions', 'unnatural facial proportions'),
        (m['catchlights'] > 0, 'natural eye reflections', 'unnatural or missing eye reflections'),
        (m['irisDetails'] > 0, 'natural iris details', 'unnatural iris details'),
    ]
    natural_features = [good for ok, good, bad in checks if ok]
    artificial_features = [bad for ok, good, bad in checks if not ok]

    cyberpunk = natural.detect_cyberpunk_aesthetic(ctx)['isCyberpunk']
    ai_filename = metadata.has_ai_style_indicator(ctx.filename)

    is_real = (
        len(natural_features) >= len(artificial_features)
        and not cyberpunk
        and not ai_filename
    )
    count = len(natural_features) if is_real else len(artificial_features)

    return {
        'hasFace': True,
        'faceCount': m['faceCount'],
        'faceBox': m['faceBox'],
        'isRealHuman': is_real,
        'confidence': min(count * 15, 95),
        'naturalFeatures': natural_features,
        'artificialFeatures': artificial_features,
        'measurements': {k: round(v, 2) if isinstance(v, float) else v for k, v in m.items()},
    }


def detect_real_human_face(ctx):
    m = measure_face(ctx)
    if m is None:
        return _no_face(isReal=False, realScore=0, aiScore=0, indicators=[])

    real_score = 0.0
    ai_score = 0.0
    indicators = []

    skin = m['skinTexture']
    if skin > 60:
        real_score += skin * 1.5
        indicators.append('natural skin texture with pores and imperfections')
    else:
        ai_score += (100 - skin) * 1.2
        indicators.append('unnaturally smooth skin texture')

    if m['skinVariation'] > SKIN_VARIATION:
        real_score += 85
        indicators.append('natural skin tone variations')
    else:
        ai_score += 85
        indicators.append('too uniform skin tones')

    eye = m['eyeScore']
    if eye > 65:
        real_score += eye * 1.2
        indicators.append('natural eye details')
    else:
        ai_score += (100 - eye) * 1.2
        indicators.append('unnatural eye characteristics')

    asym = m['asymmetry']
    if asym > 60:
        real_score += asym * 1.4
        indicators.append('natural facial asymmetry')
    else:
        ai_score += (100 - asym) * 1.0
        indicators.append('unnaturally symmetrical face')

    fantasy = m['fantasyScore']
    if fantasy > 40:
        ai_score += fantasy * 3
        indicators.append('fantasy/magical elements detected')

    real_score /= REAL_WEIGHT_TOTAL
    ai_score /= AI_WEIGHT_TOTAL

    return {
        'hasFace': True,
        'faceCount': m['faceCount'],
        'isReal': real_score >= ai_score * 1.3,
        'confidence': min(abs(real_score - ai_score), 99),
        'realScore': round(real_score, 2),
        'aiScore': round(ai_score, 2),
        'indicators': indicators,
    }


def _unique(items):
    seen = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen


def perform_enhanced_face_analysis(ctx):
    """Both face views combined, leaning towards real when either is confident"""
    human = analyze_human_face(ctx)
    detection = detect_real_human_face(ctx)

    if not human['hasFace']:
        return _no_face(isRealHuman=False, naturalFeatures=[], artificialFeatures=[],
                        humanFaceAnalysis=human, realFaceDetection=detection)

    is_real = (
        (human['isRealHuman'] and human['confidence'] > 60)
        or (detection['isReal'] and detection['confidence'] > 70)
    )

    if human['isRealHuman'] and detection['isReal']:
        confidence = human['confidence'] * 0.4 + detection['confidence'] * 0.6
    elif human['isRealHuman']:
        confidence = human['confidence']
    else:
        confidence = detection['confidence']

    natural_features = []
    artificial_features = []
    if human['isRealHuman']:
        natural_features.extend(human['naturalFeatures'])
    else:
        artificial_features.extend(human['artificialFeatures'])
    if detection['isReal']:
        natural_features.extend(detection['indicators'])
    else:
        artificial_features.extend(detection['indicators'])

    return {
        'hasFace': True,
        'faceCount': human['faceCount'],
        'isRealHuman': is_real,
        'confidence': confidence,
        'naturalFeatures': _unique(natural_features),
        'artificialFeatures': _unique(artificial_features),
        'humanFaceAnalysis': human,
        'realFaceDetection': detection,
    }


def analyze_face(ctx):
    """Facial summary consumed by the standard classifier"""
    human = analyze_human_face(ctx)
    if not human['hasFace']:
        return _no_face(isRealFace=False, facialFeatures=None)

    m = measure_face(ctx)
    natural_features = human['naturalFeatures']
    reflections = m['catchlights'] > 0
    microexpressions = m['mouthDetail'] > 50

    details = []
    if human['isRealHuman']:
        if microexpressions:
            details.append('natural facial microexpressions')
        details.extend(natural_features)
        if metadata.has_camera_indicator(ctx.filename):
            details.append('camera indicator in filename')
    else:
        if not microexpressions:
            details.append('missing facial microexpressions')
        details.extend(human['artificialFeatures'])
        if metadata.has_ai_style_indicator(ctx.filename):
            details.append('AI style indicator in filename')
        if natural.detect_cyberpunk_aesthetic(ctx)['isCyberpunk']:
            details.append('cyberpunk/sci-fi aesthetic detected')

    return {
        'hasFace': True,
        'faceCount': human['faceCount'],
        'isRealFace': human['isRealHuman'],
        'confidence': human['confidence'] / 100.0,
        'facialFeatures': {
            'eyeReflections': reflections,
            'skinTextureNatural': m['residualStd'] > PORE_RESIDUAL_STD,
            'microexpressions': microexpressions,
            'asymmetry': 0.7 if m['asymmetry'] > NATURAL_ASYMMETRY else 0.2,
            'imperfections': len(natural_features),
            'details': details,
        },
    }
