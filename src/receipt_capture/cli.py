"""Main CLI entry point."""

import asyncio
import json
import mimetypes
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console

from receipt_capture.config import Config, Provider, mode_from_env
from receipt_capture.enhance import EnhancementMode
from receipt_capture.errors import CaptureError
from receipt_capture.log import configure_logging
from receipt_capture.providers.anthropic import AnthropicExtractor
from receipt_capture.providers.base import BaseExtractor
from receipt_capture.providers.http import HttpExtractor
from receipt_capture.providers.openai import OpenAIExtractor
from receipt_capture.region import detect_content_region
from receipt_capture.session import CaptureSession, EntryMethod
from receipt_capture.storage import JsonlRecordStore, LocalStorage

console = Console(stderr=True)
load_dotenv()

RECORDS_FILE = "gastos.jsonl"


@click.command()
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--mode", "-m",
    type=click.Choice([m.value for m in EnhancementMode], case_sensitive=False),
    default=None,
    help="Enhancement mode. Defaults to RECEIPT_CAPTURE_MODE, then 'strong'.",
)
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Where to write the processed JPEG. Defaults to <name>_procesado.jpg next to the input.",
)
@click.option(
    "--extract/--no-extract",
    default=True,
    show_default=True,
    help="Send a downsampled copy to the field-extraction service.",
)
@click.option(
    "--provider", "-p",
    type=click.Choice([p.value for p in Provider], case_sensitive=False),
    default=Provider.ANTHROPIC.value,
    show_default=True,
    help="Field-extraction backend.",
)
@click.option("--model", default=None, help="Model name override for LLM providers.")
@click.option("--api-key", default=None, help="API key (overrides environment variable).")
@click.option("--endpoint", default=None, help="Extraction endpoint URL for the http provider.")
@click.option(
    "--store",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Save both images and the expense record under this directory.",
)
@click.option("--task-id", type=int, default=0, show_default=True, help="Task the expense belongs to.")
@click.option("--amount", default=None, help="Amount to record (overrides extraction).")
@click.option("--description", default=None, help="Description to record (overrides extraction).")
@click.option("--date", "date_", default=None, help="Expense date, YYYY-MM-DD.")
@click.option("--category", default=None, help="Expense category, e.g. material or mano_de_obra.")
@click.option("--show-region", is_flag=True, help="Print the detected content bounding box.")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging.")
@click.version_option(package_name="receipt-capture")
def main(
    input_path, mode, output, extract, provider, model, api_key, endpoint,
    store, task_id, amount, description, date_, category, show_region, verbose,
):
    """Preprocess a receipt photo and extract its expense fields.

    INPUT_PATH is a photo or scan of a paper receipt (.jpg, .png, .webp, ...).
    The processed image is written next to it; the resulting form is printed
    to stdout as JSON.
    """
    configure_logging(verbose)
    enhancement = EnhancementMode(mode.lower()) if mode else mode_from_env()

    extractor = None
    if extract:
        try:
            config = Config.from_env(
                provider=Provider(provider.lower()),
                model_override=model,
                api_key_override=api_key,
                endpoint_override=endpoint,
            )
        except RuntimeError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        extractor = _build_extractor(config)

    session = CaptureSession(
        task_id=task_id,
        mode=enhancement,
        extractor=extractor,
        storage=LocalStorage(store) if store else None,
        records=JsonlRecordStore(store / RECORDS_FILE) if store else None,
    )
    overrides = {
        "monto": amount,
        "descripcion": description,
        "fecha": date_,
        "tipo_gasto": category,
    }

    try:
        result = asyncio.run(_run(session, input_path, output, overrides, save=store is not None))
    except CaptureError as e:
        console.print(f"[red]Error:[/red] {type(e).__name__}: {e}")
        sys.exit(1)

    if show_region and session.capture is not None and session.capture.threshold is not None:
        box = detect_content_region(session.capture.processed, session.capture.threshold)
        console.print(
            f"[dim]Content region: top={box.top} bottom={box.bottom} "
            f"left={box.left} right={box.right}[/dim]"
        )

    click.echo(json.dumps(result, ensure_ascii=False, indent=2))


async def _run(
    session: CaptureSession,
    input_path: Path,
    output: Optional[Path],
    overrides: dict,
    save: bool,
) -> dict:
    session.begin(EntryMethod.FILE)
    media_type = mimetypes.guess_type(input_path.name)[0]
    with console.status(f"[cyan]Processing {input_path.name} ({session.mode.value})..."):
        session.supply(input_path.read_bytes(), media_type=media_type, filename=input_path.name)

    target = output or input_path.with_name(f"{input_path.stem}_procesado.jpg")
    target.write_bytes(session.processed_jpeg)
    console.print(f"[green]Processed image written to {target}[/green]")

    if session.extraction_pending:
        with console.status("[cyan]Extracting fields..."):
            await session.wait_for_extraction()
        if session.extraction_error is not None:
            console.print(f"[yellow]Extraction failed:[/yellow] {session.extraction_error}")

    session.update_form(**overrides)
    result = {"form": dict(session.form), "processed_image": str(target)}

    if save:
        saved = await session.save()
        console.print(f"[green]Expense saved ({saved.record_id})[/green]")
        result["saved"] = {
            "id": saved.record_id,
            "receipt_url": saved.receipt_url,
            "processed_url": saved.processed_url,
        }
    return result


def _build_extractor(config: Config) -> BaseExtractor:
    if config.provider == Provider.ANTHROPIC:
        return AnthropicExtractor(api_key=config.api_key, model=config.model)
    elif config.provider == Provider.OPENAI:
        return OpenAIExtractor(api_key=config.api_key, model=config.model, base_url=config.base_url)
    elif config.provider == Provider.HTTP:
        return HttpExtractor(endpoint=config.endpoint)
    else:
        raise ValueError(f"Unknown provider: {config.provider}")
