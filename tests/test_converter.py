import pytest
from PIL import Image

from msx2_screen_converter import (
    BSAVE_HEADER,
    ConversionError,
    ConvertOptions,
    ImageSource,
    PixelBuffer,
    ScreenMode,
    convert_file,
    convert_image,
    convert_pixels,
)
from msx2_screen_converter.palette import decode_palette_file

IMAGE_HEADER = bytes([0xFE, 0x00, 0x00, 0x00, 0xD4, 0x00, 0x00])


def _gradient(width, height):
    return PixelBuffer.from_rgb(
        width,
        height,
        [
            ((x * 3) % 256, (y * 5) % 256, ((x + y) * 7) % 256)
            for y in range(height)
            for x in range(width)
        ],
    )


def _convert(pixels, mode, **kwargs):
    return convert_pixels(pixels, ConvertOptions(mode=mode, **kwargs))


@pytest.mark.parametrize(
    "mode, sizes",
    [
        ("screen5", {"s50": 27143, "pal": 39}),
        ("screen7", {"s70": 27143, "s71": 27143, "pal": 39}),
        ("screen8", {"sc8": 54279}),
        ("screen12", {"sc12": 54279}),
    ],
)
def test_buffer_sizes_and_headers(mode, sizes):
    screen = ScreenMode.parse(mode)
    result = _convert(_gradient(screen.width, screen.height), mode)

    assert result.mode is screen
    assert {tag: len(data) for tag, data in result.files.items()} == sizes
    for tag, data in result.files.items():
        if tag == "pal":
            assert data[:7] == bytes([0xFE, 0x00, 0x00, 0x80, 0x1B, 0x00, 0x00])
        else:
            assert data[:7] == IMAGE_HEADER == BSAVE_HEADER
    assert (result.preview.width, result.preview.height) == screen.size
    assert len(result.preview.pixels) == screen.width * screen.height


def test_screen8_uniform_color():
    result = _convert(PixelBuffer.filled(256, 212, (200, 50, 50)), "screen8")
    data = result.files["sc8"]
    assert len(data) == 54279
    assert set(data[7:]) == {0x38}
    assert set(result.preview.pixels) == {(192, 32, 0, 255)}
    assert result.palette is None


def test_screen5_nibble_packing():
    rgb = [(0, 0, 0) if x % 2 == 0 else (255, 255, 255) for y in range(212) for x in range(256)]
    result = _convert(PixelBuffer.from_rgb(256, 212, rgb), "screen5")

    assert result.palette == ((0, 0, 0),) * 15 + ((224, 224, 224),)
    assert set(result.files["s50"][7:]) == {0x0F}
    assert result.preview.pixels[0] == (0, 0, 0, 255)
    assert result.preview.pixels[1] == (224, 224, 224, 255)
    assert decode_palette_file(result.files["pal"])[15] == (255, 255, 255)


def test_screen7_splits_rows_between_buffers():
    rgb = [(255, 0, 0) if y < 106 else (0, 0, 255) for y in range(212) for _ in range(512)]
    result = _convert(PixelBuffer.from_rgb(512, 212, rgb), "screen7")

    # Blue is darker, so it sorts to index 0 and red takes index 1.
    assert result.palette[0] == (0, 0, 224)
    assert set(result.palette[1:]) == {(224, 0, 0)}
    assert set(result.files["s70"][7:]) == {0x11}
    assert set(result.files["s71"][7:]) == {0x00}
    assert result.preview.pixels[0] == (224, 0, 0, 255)
    assert result.preview.pixels[-1] == (0, 0, 224, 255)


def test_screen12_gray_groups():
    result = _convert(PixelBuffer.filled(256, 212, (128, 128, 128)), "screen12")
    payload = result.files["sc12"][7:]
    assert payload[:10] == bytes([16, 16, 16, 16, 0, 16, 16, 16, 16, 0])
    assert set(result.preview.pixels) == {(128, 128, 128, 255)}


def test_screen12_chroma_byte_truncates_k():
    result = _convert(PixelBuffer.filled(256, 212, (255, 0, 0)), "screen12")
    payload = result.files["sc12"][7:]
    # j = -16 keeps five bits, k = 15 keeps only its low three bits.
    assert payload[:5] == bytes([10, 10, 10, 10, 0x87])
    assert result.preview.pixels[0] == (95, 80, 64, 255)


def test_screen12_averages_chroma_per_group():
    rgb = []
    for _ in range(212):
        for x in range(0, 256, 4):
            rgb.extend([(0, 0, 255), (0, 0, 255), (128, 128, 128), (128, 128, 128)])
    result = _convert(PixelBuffer.from_rgb(256, 212, rgb), "screen12")
    payload = result.files["sc12"][7:]
    # Blue gives j = 15, k = -16 (clamped); the gray pair gives 0, 0.
    # avg j = round(7.5) = 8, avg k = round(-8) = -8.
    assert payload[4] == ((8 & 0x1F) << 3) | (-8 & 0x07)
    assert payload[:4] == bytes([4, 4, 16, 16])


def test_cluster_palette_method_changes_palette_file_tag():
    result = _convert(_gradient(256, 212), "screen5", palette_method="cluster")
    assert result.files["pal"][4] == 0xFA
    assert decode_palette_file(result.files["pal"]) == result.palette


def test_unknown_mode_fails_with_tag():
    with pytest.raises(ConversionError, match="screen9"):
        _convert(PixelBuffer.filled(256, 212, (0, 0, 0)), "screen9")


def test_mode_parse_accepts_members_and_case():
    assert ScreenMode.parse(ScreenMode.SCREEN8) is ScreenMode.SCREEN8
    assert ScreenMode.parse("SCREEN12") is ScreenMode.SCREEN12
    assert ScreenMode.SCREEN7.size == (512, 212)
    assert ScreenMode.SCREEN5.size == (256, 212)


def test_dead_flags_do_not_change_output():
    pixels = _gradient(256, 212)
    plain = _convert(pixels, "screen5")
    flagged = _convert(pixels, "screen5", dithering=True, keep_aspect_ratio=True)
    assert dict(plain.files) == dict(flagged.files)
    assert plain.preview == flagged.preview


def test_results_are_independent_and_read_only():
    first = _convert(PixelBuffer.filled(256, 212, (200, 50, 50)), "screen8")
    second = _convert(PixelBuffer.filled(256, 212, (0, 0, 0)), "screen8")
    assert set(first.files["sc8"][7:]) == {0x38}
    assert set(second.files["sc8"][7:]) == {0x00}
    with pytest.raises(TypeError):
        first.files["sc8"] = b""


def test_image_source_resamples_to_mode_size():
    source = ImageSource(Image.new("RGB", (100, 50), (10, 20, 30)))
    pixels = source.fetch(256, 212)
    assert (pixels.width, pixels.height) == (256, 212)
    assert len(pixels.pixels) == 256 * 212


def test_convert_image_resizes_before_encoding():
    image = Image.new("RGB", (320, 240), (200, 50, 50))
    result = convert_image(image, ConvertOptions(mode="screen8"))
    assert set(result.files["sc8"][7:]) == {0x38}


def test_convert_image_rejects_unknown_mode_before_filtering():
    with pytest.raises(ConversionError, match="screen3"):
        convert_image(Image.new("RGB", (8, 8)), ConvertOptions(mode="screen3", filter_name="nope"))


def test_convert_file_round_trip(tmp_path):
    path = tmp_path / "source.png"
    Image.new("RGB", (256, 212), (200, 50, 50)).save(path)
    result = convert_file(path, ConvertOptions(mode="screen8"))
    assert set(result.files["sc8"][7:]) == {0x38}


def test_convert_file_missing(tmp_path):
    with pytest.raises(ConversionError, match="not found"):
        convert_file(tmp_path / "missing.png")


def test_preview_to_image():
    result = _convert(PixelBuffer.filled(256, 212, (200, 50, 50)), "screen8")
    image = result.preview.to_image()
    assert image.mode == "RGBA"
    assert image.size == (256, 212)
    assert image.getpixel((0, 0)) == (192, 32, 0, 255)
