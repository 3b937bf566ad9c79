"""
BlurMate Command Line Interface

Applies a painted blur to an image file from strokes given on the command
line, going through the same session and export path as the app.
"""

import sys
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import click

from . import __version__
from .config import get_config_value, load_config
from .editing.models import BlurStyle, ExportState
from .editing.session import EditSession
from .exceptions import BlurMateError
from .io.images import load_image
from .storage.local import FileSink
from .utils.logging import setup_console_logging

logger = logging.getLogger(__name__)


def parse_stroke(text: str) -> List[Tuple[float, float]]:
    """
    Parse a stroke given as space-separated "x,y" pairs.

    Args:
        text: e.g. "100,100 120,110 140,130"

    Returns:
        List of (x, y) points in display units
    """
    points = []
    for pair in text.split():
        try:
            x_text, y_text = pair.split(',')
            points.append((float(x_text), float(y_text)))
        except ValueError:
            raise click.BadParameter(f"Invalid point '{pair}', expected x,y")
    if not points:
        raise click.BadParameter("A stroke needs at least one point")
    return points


def parse_size(text: Optional[str]) -> Optional[Tuple[float, float]]:
    """Parse a WIDTHxHEIGHT viewport size."""
    if text is None:
        return None
    try:
        width_text, height_text = text.lower().split('x')
        return float(width_text), float(height_text)
    except ValueError:
        raise click.BadParameter(f"Invalid size '{text}', expected WIDTHxHEIGHT")


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False),
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-error output')
@click.pass_context
def main(ctx, config: Optional[str] = None, verbose: bool = False, quiet: bool = False):
    """
    BlurMate - paint a mask over a photo and blur it
    """
    if ctx.obj is None:
        ctx.obj = {}

    ctx.obj['config'] = load_config(config)

    level = get_config_value(ctx.obj['config'], 'logging.level', 'INFO')
    if verbose:
        level = 'DEBUG'
    elif quiet:
        level = 'ERROR'
    setup_console_logging(level, fmt=get_config_value(ctx.obj['config'], 'logging.format'))

    ctx.obj['quiet'] = quiet


@main.command()
@click.argument('image', type=click.Path(exists=True, dir_okay=False))
@click.option('--output', '-o', required=True, type=click.Path(dir_okay=True),
              help='Output file, or directory for a generated name')
@click.option('--stroke', '-s', 'strokes', multiple=True, required=True,
              help='Stroke as space-separated x,y display points; repeatable')
@click.option('--display', '-d', help='Viewport size the strokes were drawn in, WIDTHxHEIGHT')
@click.option('--brush', '-b', type=float, help='Brush diameter in display units')
@click.option('--blur', type=float, help='Blur intensity in display units')
@click.option('--style', type=click.Choice([style.value for style in BlurStyle]),
              help='Blur style')
@click.pass_context
def apply(ctx, image: str, output: str, strokes: Tuple[str, ...], display: Optional[str],
          brush: Optional[float], blur: Optional[float], style: Optional[str]):
    """
    Blur the painted region of IMAGE and save the result.

    IMAGE: Path to the source photo
    """
    config = ctx.obj.get('config', {})
    quiet = ctx.obj.get('quiet', False)

    sink = FileSink(
        output,
        image_format=get_config_value(config, 'export.output_format', 'PNG'),
        jpeg_quality=int(get_config_value(config, 'export.jpeg_quality', 95)),
    )
    session = EditSession(sink, config=config)

    try:
        session.load_image(load_image(image))

        size = parse_size(display)
        if size is not None:
            session.set_display_geometry(*size)
        if brush is not None:
            session.set_brush_size(brush)
        if blur is not None:
            session.set_blur_intensity(blur)
        if style is not None:
            session.set_blur_style(style)

        for stroke in strokes:
            for x, y in parse_stroke(stroke):
                session.on_drag_update(x, y)
            session.on_drag_end()

        session.export()
        state = session.exporter.wait()
    except BlurMateError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        session.close()

    if state != ExportState.SUCCEEDED:
        click.echo(f"Export failed: {session.save_error}", err=True)
        sys.exit(1)

    if not quiet:
        for path in sink.saved_paths:
            click.echo(f"Saved {path}")


@main.command()
def version():
    """Show version information."""
    click.echo(f"BlurMate {__version__}")


if __name__ == '__main__':
    main()
