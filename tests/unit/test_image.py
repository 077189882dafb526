import numpy as np
import pytest

from glyphnet.core.image import (
    binarize,
    centralize_and_resize,
    find_bounding_box,
    prepare_for_inference,
    process_image,
    reshape_1d_to_2d,
    reshape_2d_to_1d,
    rotate,
)


def test_bounding_box_of_blank_image_is_full_frame():
    assert find_bounding_box(np.zeros(12, dtype=int), 4, 3) == (0, 0, 3, 2)


def test_bounding_box_of_single_pixel():
    image = np.zeros(12, dtype=int)
    image[1 * 4 + 2] = 9
    assert find_bounding_box(image, 4, 3) == (2, 1, 2, 1)


def test_full_frame_box_at_same_size_is_identity():
    image = np.arange(16) + 1
    bbox = find_bounding_box(image, 4, 4)
    assert bbox == (0, 0, 3, 3)
    out = centralize_and_resize(image, 4, 4, 4, 4, bbox)
    np.testing.assert_array_equal(out, image)


def test_single_pixel_is_scaled_to_fill_the_canvas():
    image = np.zeros(28 * 28, dtype=int)
    image[10 * 28 + 5] = 200
    out = process_image(image, 28, 28, 24, 24)
    assert out.shape == (24 * 24,)
    assert np.all(out == 200)


def _place_glyph(glyph, top, left, size=28):
    canvas = np.zeros((size, size), dtype=int)
    canvas[top : top + glyph.shape[0], left : left + glyph.shape[1]] = glyph
    return canvas.reshape(-1)


def test_glyph_is_cropped_and_centred_wherever_it_is_drawn():
    glyph = np.zeros((9, 5), dtype=int)
    glyph[:, 0] = 255
    glyph[-1, :] = 180
    glyph[4, 2] = 90

    near_corner = process_image(_place_glyph(glyph, 1, 2), 28, 28, 24, 24)
    off_centre = process_image(_place_glyph(glyph, 16, 20), 28, 28, 24, 24)

    np.testing.assert_array_equal(near_corner, off_centre)
    assert near_corner.shape == (24 * 24,)
    assert set(np.unique(near_corner)) <= {0, 90, 180, 255}
    assert near_corner.any()


def test_binarized_output_is_stable_under_rebinarization():
    rng = np.random.default_rng(0)
    image = rng.integers(0, 256, size=28 * 28)
    once = binarize(process_image(image, 28, 28, 24, 24), 50)
    assert set(np.unique(once)) <= {0, 1}
    np.testing.assert_array_equal(binarize(once, 0), once)


def test_binarize_is_strictly_greater_than_threshold():
    np.testing.assert_array_equal(binarize([49, 50, 51, 255], 50), [0, 0, 1, 1])


def test_rotate_by_zero_is_identity():
    rng = np.random.default_rng(1)
    image = rng.integers(0, 2, size=24 * 24)
    np.testing.assert_array_equal(rotate(image, 24, 24, 0), image)


@pytest.mark.parametrize("angle", [-15, -3, 7, 14])
def test_rotate_keeps_centre_pixel_and_source_values(angle):
    image = np.zeros(24 * 24, dtype=int)
    image[12 * 24 + 12] = 7
    image[3 * 24 + 5] = 4
    rotated = reshape_1d_to_2d(rotate(image, 24, 24, angle), 24, 24)
    assert rotated[12, 12] == 7
    assert set(np.unique(rotated)) <= {0, 4, 7}


def test_rotate_blank_image_stays_blank():
    assert not rotate(np.zeros(36, dtype=int), 6, 6, 10).any()


def test_reshape_helpers_validate_sizes():
    matrix = reshape_1d_to_2d(np.arange(6), 2, 3)
    assert matrix.shape == (2, 3)
    np.testing.assert_array_equal(reshape_2d_to_1d(matrix), np.arange(6))
    with pytest.raises(ValueError):
        reshape_1d_to_2d(np.arange(5), 2, 3)
    with pytest.raises(ValueError):
        reshape_2d_to_1d(np.arange(4))


def test_prepare_for_inference_inverts_drawing_polarity():
    canvas = np.full(28 * 28, 255)
    canvas[14 * 28 + 14] = 0  # one dark stroke pixel
    prepared = prepare_for_inference(canvas, 28, 24, 50)
    assert prepared.shape == (24 * 24,)
    assert np.all(prepared == 1)

    blank = prepare_for_inference(np.full(28 * 28, 255), 28, 24, 50)
    assert not blank.any()


def test_prepare_for_inference_rejects_wrong_pixel_count():
    with pytest.raises(ValueError):
        prepare_for_inference(np.zeros(10), 28, 24, 50)
