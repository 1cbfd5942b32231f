import argparse
import asyncio
import os
import sys

from pyarranger.core import AudioEngine, ExportFormat
from pyarranger.utils.logger import logger


def parse_args(argv):
    parser = argparse.ArgumentParser(description="Arrange audio files and render a mixdown.")
    parser.add_argument("files", nargs="*", help="Audio files to import, one lane each")
    parser.add_argument("-o", "--output", default="mix.wav", help="Output file (extension picks the format)")
    parser.add_argument("--samplerate", type=int, default=None, help="Resample the mix to this rate")
    parser.add_argument("--beat", default=None, help="Add a looping drum beat (Rock, HipHop, Techno, Metronome)")
    parser.add_argument("--bpm", type=float, default=None, help="Beat tempo (defaults to the detected project tempo)")
    parser.add_argument("--bars", type=int, default=4)
    return parser.parse_args(argv)


async def run(args):
    engine = AudioEngine()
    try:
        payload = []
        for path in args.files:
            with open(path, "rb") as f:
                payload.append((os.path.basename(path), f.read()))
        if payload:
            result = await engine.import_files(payload)
            if not result:
                logger.error(f"Import failed: {result.reason}")

        if args.beat:
            engine.seek(0.0)
            engine.select(None)
            await engine.add_beat(args.beat, args.bpm, args.bars)

        fmt = ExportFormat.parse(os.path.splitext(args.output)[1] or "wav")
        data = await engine.export(fmt, args.samplerate)
        if data is None:
            logger.error("Nothing to export")
            return 1
        with open(args.output, "wb") as f:
            f.write(data)
        logger.info(f"Wrote {args.output}")
        return 0
    finally:
        engine.close()


def main():
    sys.exit(asyncio.run(run(parse_args(sys.argv[1:]))))

if __name__ == "__main__":
    main()
