"""
Tests for stroke recording, coordinate mapping and the edit session.
"""

import math

import numpy as np
import pytest

from blurmate.editing import (
    BlurParameters, CoordinateMapper, DisplayGeometry, SourceImage, Stroke,
    StrokeRecorder
)
from blurmate.editing.models import BlurStyle, ExportState
from blurmate.editing.session import EditSession
from blurmate.exceptions import NoImageError, NoStrokesError
from blurmate.storage import MemorySink


def make_image(width=100, height=50, channels=3, value=128):
    return SourceImage(np.full((height, width, channels), value, dtype=np.uint8))


class TestStrokeRecorder:
    """Test drag accumulation, commit, undo and clear."""

    def test_drag_builds_single_stroke(self):
        """Points from one drag end up in one committed stroke."""
        recorder = StrokeRecorder(brush_size=20)
        recorder.on_drag_update(1, 2)
        recorder.on_drag_update(3, 4)
        recorder.on_drag_update(3, 4)  # duplicates are kept
        stroke = recorder.on_drag_end()

        assert stroke.points == ((1.0, 2.0), (3.0, 4.0), (3.0, 4.0))
        assert stroke.brush_size == 20
        assert recorder.snapshot() == (stroke,)

    def test_in_progress_stroke_not_committed(self):
        """The live stroke is only visible to the preview."""
        recorder = StrokeRecorder()
        recorder.on_drag_update(5, 5)

        assert recorder.is_drawing
        assert recorder.snapshot() == ()
        assert len(recorder.strokes_for_preview()) == 1

    def test_drag_end_without_drag_is_noop(self):
        """Ending a drag that never started commits nothing."""
        recorder = StrokeRecorder()
        assert recorder.on_drag_end() is None
        assert recorder.snapshot() == ()

    def test_brush_size_captured_at_stroke_start(self):
        """Changing the brush mid-drag does not affect the current stroke."""
        recorder = StrokeRecorder(brush_size=10)
        recorder.on_drag_update(0, 0)
        recorder.brush_size = 50
        recorder.on_drag_update(1, 1)
        first = recorder.on_drag_end()
        recorder.on_drag_update(2, 2)
        second = recorder.on_drag_end()

        assert first.brush_size == 10
        assert second.brush_size == 50

    def test_undo_inverts_last_commit(self):
        """Commit then undo restores the previous stroke set."""
        recorder = StrokeRecorder()
        recorder.on_drag_update(0, 0)
        recorder.on_drag_end()
        before = recorder.snapshot()

        recorder.on_drag_update(10, 10)
        recorder.on_drag_update(20, 20)
        committed = recorder.on_drag_end()

        assert recorder.undo() == committed
        assert recorder.snapshot() == before

    def test_undo_on_empty_history(self):
        """Undo with no strokes does nothing."""
        recorder = StrokeRecorder()
        assert recorder.undo() is None
        assert len(recorder) == 0

    def test_undo_keeps_in_progress_stroke(self):
        """Undo only touches committed strokes."""
        recorder = StrokeRecorder()
        recorder.on_drag_update(0, 0)
        recorder.on_drag_end()
        recorder.on_drag_update(7, 7)

        recorder.undo()

        assert recorder.snapshot() == ()
        assert recorder.is_drawing
        assert recorder.on_drag_end().points == ((7.0, 7.0),)

    def test_clear_discards_everything(self):
        """Clear drops committed and in-progress strokes."""
        recorder = StrokeRecorder()
        recorder.on_drag_update(0, 0)
        recorder.on_drag_end()
        recorder.on_drag_update(1, 1)

        recorder.clear()

        assert recorder.snapshot() == ()
        assert not recorder.is_drawing

    def test_snapshot_is_isolated_from_later_changes(self):
        """A snapshot does not change when the recorder does."""
        recorder = StrokeRecorder()
        recorder.on_drag_update(0, 0)
        recorder.on_drag_end()
        snapshot = recorder.snapshot()

        recorder.on_drag_update(1, 1)
        recorder.on_drag_end()
        recorder.clear()

        assert len(snapshot) == 1

    @pytest.mark.parametrize("x, y", [(math.nan, 0), (0, math.inf)])
    def test_non_finite_points_rejected(self, x, y):
        """Non-finite coordinates raise ValueError."""
        recorder = StrokeRecorder()
        with pytest.raises(ValueError):
            recorder.on_drag_update(x, y)

    def test_stroke_requires_points(self):
        """An empty stroke cannot be built."""
        with pytest.raises(ValueError):
            Stroke(points=(), brush_size=10)


class TestCoordinateMapper:
    """Test display-to-source mapping."""

    def test_scale_factors(self):
        """Scale factors are source size over display size."""
        mapper = CoordinateMapper()
        sx, sy = mapper.scale_factors(DisplayGeometry(500, 250), (1000, 500))
        assert sx == pytest.approx(2.0)
        assert sy == pytest.approx(2.0)

    @pytest.mark.parametrize("display, source", [
        ((1, 1), (1, 1)),
        ((375, 500), (3024, 4032)),
        ((1000, 10), (7, 9000)),
    ])
    def test_origin_maps_to_origin(self, display, source):
        """Scale factors are positive and the origin is fixed."""
        mapper = CoordinateMapper()
        sx, sy = mapper.scale_factors(DisplayGeometry(*display), source)
        assert sx > 0 and sy > 0

        mapped = mapper.map_stroke(Stroke(points=((0, 0),), brush_size=10), sx, sy)
        assert mapped.points == ((0.0, 0.0),)

    def test_non_uniform_scale_uses_min_for_brush_and_blur(self):
        """Brush and blur use the smaller scale factor."""
        mapper = CoordinateMapper()
        image = make_image(width=400, height=300)
        strokes = (Stroke(points=((10, 10),), brush_size=10),)
        mapped = mapper.map_export(image, strokes, BlurParameters(brush_size=10, blur_intensity=5),
                                   DisplayGeometry(100, 100))

        assert mapped.scale_x == pytest.approx(4.0)
        assert mapped.scale_y == pytest.approx(3.0)
        assert mapped.strokes[0].points == ((40.0, 30.0),)
        assert mapped.strokes[0].diameter == pytest.approx(30.0)
        assert mapped.blur_radius == pytest.approx(15.0)

    @pytest.mark.parametrize("display", [
        DisplayGeometry(0, 0),
        DisplayGeometry(-10, 100),
        DisplayGeometry(100, math.nan),
        None,
    ])
    def test_degenerate_display_falls_back(self, display):
        """A degenerate viewport becomes 300 units wide with the image aspect."""
        mapper = CoordinateMapper()
        geometry = mapper.effective_geometry(display, (1200, 600))
        assert geometry == DisplayGeometry(300, 150)

        sx, sy = mapper.scale_factors(display, (1200, 600))
        assert sx == pytest.approx(4.0)
        assert sy == pytest.approx(4.0)

    def test_nothing_to_export(self):
        """Missing image or strokes abort the mapping."""
        mapper = CoordinateMapper()
        stroke = Stroke(points=((1, 1),), brush_size=10)

        with pytest.raises(NoImageError):
            mapper.map_export(None, (stroke,), BlurParameters(), DisplayGeometry(10, 10))
        with pytest.raises(NoStrokesError):
            mapper.map_export(make_image(), (), BlurParameters(), DisplayGeometry(10, 10))


class TestSourceImage:
    """Test the source image model."""

    def test_pixels_are_read_only(self):
        """The shared buffer cannot be written through the image."""
        image = make_image()
        with pytest.raises(ValueError):
            image.pixels[0, 0, 0] = 1

    def test_caller_array_changes_do_not_leak(self):
        """Writing to the original array leaves the image pixels alone."""
        pixels = np.zeros((4, 4, 3), dtype=np.uint8)
        image = SourceImage(pixels)

        pixels[:] = 255

        assert image.pixels.max() == 0

    def test_read_only_arrays_are_shared(self):
        """Already frozen buffers are used without copying."""
        pixels = np.zeros((4, 4, 3), dtype=np.uint8)
        pixels.flags.writeable = False

        assert np.shares_memory(SourceImage(pixels).pixels, pixels)

    def test_rejects_float_pixels(self):
        """Only integer pixel buffers are accepted."""
        with pytest.raises(ValueError):
            SourceImage(np.zeros((4, 4, 3), dtype=np.float32))


class TestEditSession:
    """Test the session surface used by the UI."""

    @pytest.fixture
    def session(self):
        session = EditSession(MemorySink())
        yield session
        session.close()

    def test_defaults_from_config(self, session):
        """Brush and blur start at the configured defaults."""
        assert session.parameters.brush_size == 30.0
        assert session.parameters.blur_intensity == 8.0
        assert session.parameters.style == BlurStyle.GAUSSIAN
        assert session.export_state == ExportState.IDLE

    def test_slider_values_are_clamped(self, session):
        """Brush and blur stay within the slider ranges."""
        assert session.set_brush_size(500) == 100.0
        assert session.set_brush_size(1) == 10.0
        assert session.set_blur_intensity(-3) == 0.0
        assert session.set_blur_intensity(40) == 15.0

    def test_brush_change_applies_to_new_strokes(self, session):
        """New strokes pick up the current brush size."""
        session.set_brush_size(42)
        session.on_drag_update(1, 1)
        session.on_drag_end()
        assert session.strokes[0].brush_size == 42

    def test_load_image_resets_strokes(self, session):
        """Picking a new image starts from a clean slate."""
        session.load_image(make_image())
        session.set_display_geometry(100, 50)
        session.on_drag_update(1, 1)
        session.on_drag_end()

        session.load_image(make_image(width=20, height=20))

        assert session.strokes == ()
        assert session.display.is_degenerate

    def test_degenerate_geometry_ignored(self, session):
        """Zero-sized layout passes keep the previous geometry."""
        session.set_display_geometry(320, 240)
        session.set_display_geometry(0, 0)
        assert session.display == DisplayGeometry(320, 240)

    def test_snapshot_captures_state(self, session):
        """The export snapshot carries strokes, parameters and geometry."""
        image = make_image()
        session.load_image(image)
        session.set_display_geometry(50, 25)
        session.on_drag_update(3, 4)
        session.on_drag_end()

        snapshot = session.snapshot()
        session.clear()

        assert snapshot.source is image
        assert len(snapshot.strokes) == 1
        assert snapshot.display == DisplayGeometry(50, 25)
        assert snapshot.parameters == session.parameters

    def test_preview_is_display_sized(self, session):
        """The preview is rendered at the viewport size."""
        session.load_image(make_image(width=200, height=100))
        session.set_display_geometry(50, 25)
        session.on_drag_update(10, 10)

        preview = session.render_preview()

        assert preview.pixels.shape == (25, 50, 3)

    def test_preview_without_image(self, session):
        """No image means no preview."""
        assert session.render_preview() is None
