import io

import numpy as np
import pytest
from PIL import Image, PngImagePlugin

from detectors import (
    anime, artifacts, depth, face, frequency, lighting, metadata, natural, portrait, style, texture, theme,
)
from utils.exceptions import ImageDecodeError
from utils.image_processor import ImageContext, get_face_detector

from conftest import encode, photo_array


def test_context_caps_long_edge():
    ctx = ImageContext.from_array(photo_array(width=600, height=300), max_edge=256)
    assert (ctx.width, ctx.height) == (256, 128)
    assert ctx.rgb.shape == (128, 256, 3)
    assert ctx.gray.shape == (128, 256)
    assert ctx.original_size == (600, 300)


def test_context_rejects_garbage():
    with pytest.raises(ImageDecodeError):
        ImageContext.from_bytes(b'not an image', filename='x.png')


def test_derived_results_are_computed_once(photo_ctx):
    calls = []

    def compute(ctx):
        calls.append(1)
        return {'value': 1}

    assert photo_ctx.derived('probe', compute) is photo_ctx.derived('probe', compute)
    assert len(calls) == 1


class TestFilenameMetadata:

    def test_camera_pattern_is_real(self):
        result = metadata.analyze_metadata_indicators('IMG_1234.jpg')
        assert result['isLikelyRealPhoto']
        assert result['hasPhotoPattern']
        assert not result['hasAiTerms']

    def test_ai_terms_block_real(self):
        result = metadata.analyze_metadata_indicators('midjourney_portrait.png')
        assert result['hasAiTerms']
        assert not result['isLikelyRealPhoto']

    def test_short_ai_term_needs_whole_token(self):
        assert metadata.has_ai_style_indicator('ai_art.png')
        assert not metadata.has_ai_style_indicator('rainforest.png')

    def test_brand_detection(self):
        assert metadata.detect_brand_in_filename('nike_shoes.jpg') == 'nike'
        assert metadata.detect_brand_in_filename('ballgown.jpg') is None

    def test_consistency_needs_camera_and_format(self):
        assert metadata.analyze_metadata_consistency('canon_eos.jpg')['hasConsistentMetadata']
        assert not metadata.analyze_metadata_consistency('canon_eos.png')['hasConsistentMetadata']


class TestEmbeddedMetadata:

    def test_exif_camera_make(self):
        img = Image.fromarray(photo_array())
        exif = Image.Exif()
        exif[0x010F] = 'Canon'
        exif[0x0110] = 'EOS 5D'
        buf = io.BytesIO()
        img.save(buf, format='JPEG', exif=exif)

        ctx = ImageContext.from_bytes(buf.getvalue(), filename='holiday.jpg')
        result = metadata.analyze_metadata(ctx)

        assert result['cameraBrand'] == 'Canon'
        assert result['hasConsistentMetadata']
        assert 'contains EXIF metadata' in result['details']

    def test_diffusion_parameters_chunk(self):
        info = PngImagePlugin.PngInfo()
        info.add_text('parameters', 'a cat, Steps: 20, Sampler: Euler a')
        buf = io.BytesIO()
        Image.fromarray(photo_array()).save(buf, format='PNG', pnginfo=info)

        ctx = ImageContext.from_bytes(buf.getvalue(), filename='cat.png')
        result = metadata.analyze_metadata(ctx)

        assert result['hasAiSignature']
        assert not result['hasConsistentMetadata']

    def test_no_metadata(self, neon_ctx):
        result = metadata.analyze_metadata(neon_ctx)
        assert not result['hasConsistentMetadata']
        assert 'missing EXIF metadata' in result['details']


class TestCyberpunk:

    def test_neon_frame_is_cyberpunk(self, neon_ctx):
        result = natural.detect_cyberpunk_aesthetic(neon_ctx)
        assert result['isCyberpunk']
        assert result['neonPercentage'] > 40
        assert result['confidence'] == 95

    def test_photo_is_not_cyberpunk(self, photo_ctx):
        assert not natural.detect_cyberpunk_aesthetic(photo_ctx)['isCyberpunk']


class TestPortrait:

    def test_skin_mask(self):
        r, g, b = np.array([220, 255, 0]), np.array([170, 0, 0]), np.array([130, 255, 0])
        assert list(portrait.skin_mask(r, g, b)) == [True, False, False]

    def test_flat_white_background_is_studio(self):
        ctx = ImageContext.from_array(np.full((100, 100, 3), 235, dtype=np.uint8))
        result = portrait.analyze_background(ctx)
        assert result['isStudio']
        assert result['studioPercentage'] == 100

    def test_enhanced_portrait_from_filename(self, neon_ctx):
        neon_ctx.filename = 'portrait_outdoor.jpg'
        result = portrait.detect_enhanced_portrait(neon_ctx)
        assert result['isPortraitPhoto']
        assert result['isOutdoorPortrait']
        assert 70 <= result['confidence'] <= 95


def test_frequency_bounds(photo_ctx):
    result = frequency.analyze_frequency_domain(photo_ctx)
    assert 0 <= result['confidence'] <= 95
    gan = frequency.detect_gan_frequency_artifacts(photo_ctx, result)
    assert gan['frequencyAnalysis'] is result
    assert gan['architectureDetection']['detectedArchitecture'] in (
        'StyleGAN', 'DALL-E', 'Midjourney', 'Stable Diffusion', 'unknown',
    )


@pytest.mark.parametrize('ctx_name', ['photo_ctx', 'neon_ctx'])
def test_artifact_confidence_range(request, ctx_name):
    result = artifacts.detect_ai_generated_image(request.getfixturevalue(ctx_name))
    if result['isAIGenerated']:
        assert 70 <= result['confidence'] <= 98
    else:
        assert result['confidence'] == 0


def test_anime_confidence_capped(neon_ctx):
    result = anime.detect_anime_style_image(neon_ctx)
    assert 0 <= result['confidence'] <= 95


def test_no_face_in_gradient(photo_ctx):
    assert face.measure_face(photo_ctx) is None
    assert not face.analyze_face(photo_ctx)['hasFace']
    assert not face.perform_enhanced_face_analysis(photo_ctx)['hasFace']


def test_texture_lighting_depth_shapes(photo_ctx):
    tex = texture.analyze_texture(photo_ctx)
    assert isinstance(tex['hasArtificialPatterns'], (bool, np.bool_))
    assert tex['details']

    light = lighting.analyze_lighting(photo_ctx)
    assert light['details'][0] in ('consistent lighting', 'inconsistent lighting')

    dep = depth.analyze_depth(photo_ctx)
    assert dep['details'][0] in ('natural depth of field', 'unnatural depth of field')


def test_style_and_theme_confidence_levels(photo_ctx, neon_ctx):
    for ctx in (photo_ctx, neon_ctx):
        s = style.analyze_style(ctx)
        t = theme.analyze_theme(ctx)
        assert 0.6 <= s['confidence'] <= 1
        assert 0.6 <= t['confidence'] <= 1


def test_natural_photograph_needs_filename_hint(photo_ctx):
    profile = {
        'colorProfile': {'colorDiversity': 0.2, 'hasNeonColors': False, 'perfectGradients': 0.1},
        'textureProfile': {'repetitivePatterns': 0.1, 'noiseInconsistency': 0.1},
        'isCyberpunkAesthetic': False,
    }
    photo_ctx.filename = 'canon_outdoor.jpg'
    assert natural.determine_if_natural_photograph(photo_ctx, profile)['isNaturalPhotograph']

    photo_ctx.filename = 'untitled.jpg'
    assert not natural.determine_if_natural_photograph(photo_ctx, profile)['isNaturalPhotograph']


def test_encode_helper_roundtrips_dimensions():
    data = encode(photo_array(width=50, height=40))
    assert ImageContext.from_bytes(data).original_size == (50, 40)


def test_haar_cascades_load():
    detector = get_face_detector()
    assert not detector.face_cascade.empty()
    assert not detector.eye_cascade.empty()
