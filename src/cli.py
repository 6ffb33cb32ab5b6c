import click
import sys
from typing import Optional

try:
    from .orchestrator import CaptureOrchestrator
    from .pdf_generator import ScreenshotPDFGenerator
    from .models import CaptureTarget
    from .exceptions import BrowserLaunchError, PDFWriteError
    from .utils import load_config, setup_logging, validate_url
except ImportError:
    from orchestrator import CaptureOrchestrator
    from pdf_generator import ScreenshotPDFGenerator
    from models import CaptureTarget
    from exceptions import BrowserLaunchError, PDFWriteError
    from utils import load_config, setup_logging, validate_url


__version__ = "1.0.0"


def _build_target(app_config: dict, url: Optional[str], selector: Optional[str]) -> CaptureTarget:
    """Resolve the capture target from CLI options, falling back to config."""
    target = CaptureTarget(
        url=url or app_config['target']['url'],
        selector=selector or app_config['target']['selector']
    )
    if not validate_url(target.url):
        click.echo(f"Error: Invalid URL '{target.url}'. Must start with http:// or https://")
        sys.exit(1)
    if not target.selector.strip():
        click.echo("Error: Selector must not be empty")
        sys.exit(1)
    return target


def _run_capture(app_config: dict, target: CaptureTarget):
    orchestrator = CaptureOrchestrator(app_config, target)
    try:
        result = orchestrator.capture()
    except BrowserLaunchError as e:
        click.echo(f"❌ Browser could not be started: {e}")
        sys.exit(1)
    finally:
        orchestrator.cleanup()

    if result.succeeded:
        click.echo(f"📸 Captured {result.count} screenshots via {result.source}")
    else:
        click.echo("⚠️  No screenshots available: no element matched the selector")
    return result


def _run_assemble(app_config: dict, input_dir: Optional[str], output: Optional[str]):
    generator = ScreenshotPDFGenerator(app_config)
    try:
        output_path = generator.generate_pdf(input_dir, output)
    except PDFWriteError as e:
        click.echo(f"❌ Error: {e}")
        sys.exit(1)

    if output_path:
        click.echo(f"🎉 PDF generated successfully: {output_path}")
    else:
        click.echo("⚠️  No screenshot images found, PDF not created")
    return output_path


@click.group(invoke_without_command=True)
@click.option('--config', '-c',
              type=click.Path(exists=True),
              help='Configuration file path')
@click.option('--verbose', '-v',
              is_flag=True,
              help='Enable verbose logging')
@click.version_option(version=__version__, prog_name="screenshot2pdf")
@click.pass_context
def main(ctx, config: Optional[str], verbose: bool):
    """screenshot2pdf - Capture page elements as screenshots and bind them into a PDF.

    Without a subcommand the full pipeline (capture, then assemble) runs.
    """
    app_config = load_config(config or 'config.yaml')
    if verbose:
        app_config['logging']['level'] = 'DEBUG'

    setup_logging(app_config['logging'], app_config['directories']['logs_dir'])
    ctx.obj = app_config

    if ctx.invoked_subcommand is None:
        ctx.invoke(run)


@main.command()
@click.option('--url', '-u',
              help='Page to capture (overrides TARGET_URL and config)')
@click.option('--selector', '-s',
              help='CSS selector of the elements to capture (overrides TARGET_SELECTOR and config)')
@click.option('--output', '-o',
              type=click.Path(),
              help='Output PDF path')
@click.pass_obj
def run(app_config: dict, url: Optional[str] = None, selector: Optional[str] = None,
        output: Optional[str] = None):
    """Capture screenshots and assemble them into a PDF."""
    target = _build_target(app_config, url, selector)
    click.echo(f"🚀 Capturing '{target.selector}' from {target.url}")

    result = _run_capture(app_config, target)
    if not result.succeeded:
        click.echo("Script execution completed without output.")
        return

    _run_assemble(app_config, None, output)


@main.command()
@click.option('--url', '-u',
              help='Page to capture (overrides TARGET_URL and config)')
@click.option('--selector', '-s',
              help='CSS selector of the elements to capture (overrides TARGET_SELECTOR and config)')
@click.pass_obj
def capture(app_config: dict, url: Optional[str], selector: Optional[str]):
    """Capture element screenshots only."""
    target = _build_target(app_config, url, selector)
    click.echo(f"🚀 Capturing '{target.selector}' from {target.url}")
    _run_capture(app_config, target)


@main.command()
@click.option('--input-dir', '-i',
              type=click.Path(),
              help='Directory containing screenshot-<n>.png files')
@click.option('--output', '-o',
              type=click.Path(),
              help='Output PDF path')
@click.pass_obj
def assemble(app_config: dict, input_dir: Optional[str], output: Optional[str]):
    """Assemble existing screenshots into a PDF."""
    _run_assemble(app_config, input_dir, output)


if __name__ == '__main__':
    main()
