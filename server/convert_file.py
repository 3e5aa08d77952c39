"""
One-shot conversion from the command line.

Reads a prompt file and an input file, streams the model output to stdout
and to an HTML file, then reports the validation result on stderr.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

from functions.llm import load_system_prompt, stream_completion
from functions.relay import RelayState, SinkClosed, StreamingRelay
from models.convert_models import ChunkEvent, ErrorEvent, StreamEvent, ValidationEvent
from settings import load_settings

logger = logging.getLogger(__name__)


class ConsoleEventSink:
    """Writes chunks to stdout and an output file as they arrive."""

    def __init__(self, output: TextIO, echo: Optional[TextIO] = None, report: Optional[TextIO] = None):
        self._output = output
        self._echo = echo
        self._report = report or sys.stderr
        self.closed = False

    async def send(self, event: StreamEvent) -> None:
        if self.closed:
            raise SinkClosed("sink is closed")
        if isinstance(event, ChunkEvent):
            self._output.write(event.content)
            if self._echo is not None:
                try:
                    self._echo.write(event.content)
                    self._echo.flush()
                except BrokenPipeError as e:
                    raise SinkClosed("stdout closed") from e
        elif isinstance(event, ValidationEvent):
            status = "valid" if event.valid else "INVALID"
            print(f"\n\nValidation: {status}", file=self._report)
            for error in event.errors:
                print(f"  - {error}", file=self._report)
        elif isinstance(event, ErrorEvent):
            print(f"\n\nConversion failed: {event.message}", file=self._report)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._output.flush()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Convert a blog source text file into an HTML snippet.")
    parser.add_argument("-p", "--prompt", dest="prompt_path", default=None,
                        help="System prompt file (default: PROMPT_PATH or functions/prompt.txt)")
    parser.add_argument("-i", "--input", dest="input_path", default="input.txt",
                        help="Source text file (default: input.txt)")
    parser.add_argument("-o", "--output", dest="output_path", default="output.html",
                        help="Where to write the generated HTML (default: output.html)")
    parser.add_argument("-m", "--model", dest="model", default=None,
                        help="Model id (default: DEFAULT_MODEL)")
    parser.add_argument("-q", "--quiet", dest="quiet", action="store_true",
                        help="Do not echo the generated HTML to stdout")
    return parser.parse_args(argv)


async def convert_file(args: argparse.Namespace) -> int:
    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    system_prompt = load_system_prompt(args.prompt_path or settings.prompt_path)
    try:
        input_text = Path(args.input_path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Cannot read input file %s: %s", args.input_path, e)
        return 2
    if not input_text.strip():
        logger.error("Input file %s is empty", args.input_path)
        return 2

    model_id = args.model or settings.default_model
    stream = stream_completion(settings, system_prompt, input_text, model_id)
    relay = StreamingRelay()
    with open(args.output_path, "w", encoding="utf-8") as handle:
        sink = ConsoleEventSink(handle, echo=None if args.quiet else sys.stdout)
        await relay.run(stream, sink)

    if relay.state is not RelayState.COMPLETED:
        return 1
    logger.info("Wrote %s", args.output_path)
    return 0


def main(argv=None) -> int:
    return asyncio.run(convert_file(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
