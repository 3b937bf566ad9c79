"""
Tests for configuration, image files, persistence sinks and the CLI.
"""

import numpy as np
import pytest
from click.testing import CliRunner
from PIL import Image

from blurmate.cli import main, parse_size, parse_stroke
from blurmate.config import get_config_value, get_default_config, load_config
from blurmate.editing import SourceImage
from blurmate.exceptions import ImageLoadError
from blurmate.io.images import EXIF_ORIENTATION_TAG, load_image, save_image
from blurmate.storage import FileSink, PersistenceDeniedError, PersistenceError


def write_test_image(path, width=80, height=60, orientation=None):
    y, x = np.indices((height, width))
    board = (((x // 2) + (y // 2)) % 2 * 255).astype(np.uint8)
    image = Image.fromarray(np.stack([board, board, 255 - board], axis=-1))
    kwargs = {}
    if orientation is not None:
        exif = Image.Exif()
        exif[EXIF_ORIENTATION_TAG] = orientation
        kwargs['exif'] = exif.tobytes()
    image.save(path, **kwargs)
    return path


class TestConfig:
    """Test YAML configuration loading."""

    def test_missing_file_uses_defaults(self, tmp_path):
        """A missing config file gives the default configuration."""
        assert load_config(tmp_path / "nope.yaml") == get_default_config()

    def test_bundled_config_matches_defaults(self):
        """The packaged config.yaml carries the default values."""
        config = load_config()
        assert get_config_value(config, 'export.timeout_seconds') == 15.0
        assert get_config_value(config, 'editor.brush_size') == 30.0
        assert get_config_value(config, 'editor.blur_intensity_range') == [0.0, 15.0]

    def test_partial_file_merges_over_defaults(self, tmp_path):
        """Keys not in the file keep their defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("export:\n  timeout_seconds: 3\n")

        config = load_config(path)

        assert config['export']['timeout_seconds'] == 3
        assert config['export']['output_format'] == 'PNG'
        assert config['editor']['brush_size'] == 30.0

    def test_env_var_expansion(self, tmp_path, monkeypatch):
        """${VAR} references are expanded."""
        monkeypatch.setenv("BLURMATE_FORMAT", "JPEG")
        path = tmp_path / "config.yaml"
        path.write_text("export:\n  output_format: ${BLURMATE_FORMAT}\n")

        assert load_config(path)['export']['output_format'] == 'JPEG'

    def test_invalid_yaml_falls_back(self, tmp_path):
        """Unparseable files fall back to defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("export: [unclosed\n")
        assert load_config(path) == get_default_config()

    def test_dotted_lookup(self):
        """Dotted keys read nested values and fall back when missing."""
        config = get_default_config()
        assert get_config_value(config, 'rendering.mask_feather') == 0.0
        assert get_config_value(config, 'missing.key', 'fallback') == 'fallback'
        assert get_config_value(config, 'editor.brush_size.deeper', 'fallback') == 'fallback'


class TestImageFiles:
    """Test reading and writing images with Pillow."""

    def test_load_keeps_orientation_without_rotating(self, tmp_path):
        """EXIF orientation is metadata; pixels keep their stored layout."""
        path = write_test_image(tmp_path / "photo.png", orientation=6)

        image = load_image(path)

        assert image.orientation == 6
        assert image.pixels.shape == (60, 80, 3)
        assert image.pixels.dtype == np.uint8

    def test_palette_image_converted(self, tmp_path):
        """Palette images load as RGB."""
        path = tmp_path / "palette.png"
        Image.new('P', (10, 8), color=3).save(path)

        image = load_image(path)

        assert image.pixels.shape == (8, 10, 3)

    def test_unreadable_file(self, tmp_path):
        """Non-image files raise ImageLoadError."""
        path = tmp_path / "broken.png"
        path.write_bytes(b"not an image")
        with pytest.raises(ImageLoadError):
            load_image(path)
        with pytest.raises(ImageLoadError):
            load_image(tmp_path / "missing.png")

    def test_save_writes_orientation(self, tmp_path):
        """Saved files carry the source orientation."""
        image = SourceImage(np.zeros((5, 7, 3), dtype=np.uint8), orientation=3)
        path = save_image(image, tmp_path / "out.png")

        reloaded = load_image(path)

        assert reloaded.orientation == 3
        assert reloaded.pixels.shape == (5, 7, 3)


class TestFileSink:
    """Test the filesystem persistence sink."""

    def test_saves_to_path(self, tmp_path):
        """Images are written and success is reported."""
        results = []
        sink = FileSink(tmp_path / "nested" / "result.png")

        sink.save(SourceImage(np.zeros((4, 4, 3), dtype=np.uint8)), results.append)

        assert results == [None]
        assert (tmp_path / "nested" / "result.png").exists()
        assert sink.saved_paths == [tmp_path / "nested" / "result.png"]

    def test_directory_target_generates_names(self, tmp_path):
        """A directory target gets timestamped files in the configured format."""
        results = []
        sink = FileSink(tmp_path, image_format='JPEG')

        sink.save(SourceImage(np.zeros((4, 4, 3), dtype=np.uint8)), results.append)

        assert results == [None]
        assert sink.saved_paths[0].parent == tmp_path
        assert sink.saved_paths[0].suffix == '.jpg'

    def test_permission_denied(self, tmp_path, monkeypatch):
        """Unwritable destinations report PersistenceDeniedError."""
        def deny(image, path, **kwargs):
            raise PermissionError(13, "Permission denied", str(path))

        monkeypatch.setattr('blurmate.storage.local.save_image', deny)
        results = []
        sink = FileSink(tmp_path / "out.png")

        sink.save(SourceImage(np.zeros((4, 4, 3), dtype=np.uint8)), results.append)

        assert len(results) == 1
        assert isinstance(results[0], PersistenceDeniedError)
        assert "Permission denied" in str(results[0])
        assert sink.saved_paths == []

    def test_unknown_suffix_written_as_png(self, tmp_path):
        """Files with unrecognized suffixes are written as PNG."""
        results = []
        path = tmp_path / "out.unknownext"

        FileSink(path).save(SourceImage(np.zeros((4, 4, 3), dtype=np.uint8)), results.append)

        assert results == [None]
        with Image.open(path) as written:
            assert written.format == 'PNG'

    def test_unsupported_format(self, tmp_path):
        """Pillow errors become PersistenceError."""
        results = []
        sink = FileSink(tmp_path, image_format='NOT-A-FORMAT')

        sink.save(SourceImage(np.zeros((4, 4, 3), dtype=np.uint8)), results.append)

        assert isinstance(results[0], PersistenceError)
        assert sink.saved_paths == []


class TestCli:
    """Test the command line interface."""

    def test_parse_helpers(self):
        """Stroke and size arguments parse into numbers."""
        assert parse_stroke("1,2 3.5,4") == [(1.0, 2.0), (3.5, 4.0)]
        assert parse_size("500x250") == (500.0, 250.0)
        assert parse_size(None) is None

    def test_apply_blurs_region(self, tmp_path):
        """The apply command writes a blurred full-size image."""
        source = write_test_image(tmp_path / "in.png")
        output = tmp_path / "out.png"

        result = CliRunner().invoke(main, [
            '-q', 'apply', str(source), '-o', str(output),
            '--stroke', '20,15 30,20', '--display', '40x30',
            '--brush', '10', '--blur', '3',
        ])

        assert result.exit_code == 0, result.output
        original = np.array(Image.open(source))
        blurred = np.array(Image.open(output))
        assert blurred.shape == original.shape
        assert not np.array_equal(blurred[28:42, 38:62], original[28:42, 38:62])
        np.testing.assert_array_equal(blurred[:10], original[:10])

    def test_apply_rejects_bad_stroke(self, tmp_path):
        """Malformed points are a usage error."""
        source = write_test_image(tmp_path / "in.png")
        result = CliRunner().invoke(main, [
            'apply', str(source), '-o', str(tmp_path / "out.png"), '--stroke', 'abc',
        ])
        assert result.exit_code != 0

    def test_version(self):
        """The version command prints the package version."""
        result = CliRunner().invoke(main, ['version'])
        assert result.exit_code == 0
        assert "BlurMate" in result.output
