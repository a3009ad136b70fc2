# cvsection/cli.py
import argparse
import time
import uuid
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

import yaml

from .config import WriterConfig, load_config
from .core import Record
from .datatypes import Float, Integer, ScaledInteger
from .errors import CVSectionError
from .io import StreamStorage
from .stream import stream_ascii_points
from .utils import atomic_write_json, log, now_iso, setup
from .writer import SectionWriter

DEFAULT_FIELDS = ["cartesianX:double", "cartesianY:double", "cartesianZ:double"]


def parse_field_spec(spec: str) -> Record:
    """
    name:double | name:single | name:int:MIN:MAX | name:scaled:MIN:MAX:SCALE[:OFFSET]
    """
    parts = [p.strip() for p in spec.split(":")]
    if len(parts) < 2 or not parts[0]:
        raise ValueError(f"Invalid field spec {spec!r}")
    name, kind, args = parts[0], parts[1].lower(), parts[2:]
    if kind in ("double", "single") and not args:
        return Record(name, Float(precision=kind))
    if kind == "int" and len(args) == 2:
        return Record(name, Integer(int(args[0]), int(args[1])))
    if kind == "scaled" and len(args) in (3, 4):
        offset = float(args[3]) if len(args) == 4 else 0.0
        return Record(name, ScaledInteger(int(args[0]), int(args[1]), float(args[2]), offset))
    raise ValueError(f"Invalid field spec {spec!r}")


def describe_record(r: Record) -> dict:
    d = asdict(r.data_type)
    d["type"] = type(r.data_type).__name__
    return {"name": r.name, "data_type": d}


def write_section(in_path: Path, out_path: Path, prototype: List[Record], guid: str,
                  config: WriterConfig) -> dict:
    pointclouds = []
    storage = StreamStorage.open(out_path)
    t0 = time.time()
    try:
        writer = SectionWriter(storage, pointclouds, guid, prototype, config)
        writer.extend(stream_ascii_points(str(in_path), [r.name for r in prototype]))
        pc = writer.finalize()
    finally:
        storage.close()
    dur = time.time() - t0
    return {
        "guid": pc.guid,
        "records": pc.records,
        "file_offset": pc.file_offset,
        "section_length": writer.section_length,
        "packets": writer.packet_count,
        "prototype": [describe_record(r) for r in pc.prototype],
        "input": str(in_path),
        "output": str(out_path),
        "timestamp": now_iso(),
        "elapsed_sec": round(dur, 3),
    }


def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="cvsection",
                                description="Write an ASCII point file as a compressed vector section")
    p.add_argument("input", help="ASCII point file, one point per line")
    p.add_argument("output", help="binary output file")
    p.add_argument("--field", dest="fields", action="append", metavar="SPEC",
                   help="name:double|single, name:int:MIN:MAX or name:scaled:MIN:MAX:SCALE[:OFFSET]; "
                        "repeat in column order (default: cartesianX/Y/Z as double)")
    p.add_argument("--guid", help="section GUID (default: random uuid4)")
    p.add_argument("--config", help="YAML config with a 'writer' mapping")
    p.add_argument("--metadata", help="write section metadata JSON to this path")
    p.add_argument("--log-dir", dest="log_dir", default=None)
    p.add_argument("--verbose", action="store_true")
    args = p.parse_args(argv)

    try:
        config = load_config(args.config) if args.config else WriterConfig()
    except (ValueError, OSError, yaml.YAMLError) as e:
        p.error(f"invalid config {args.config}: {e}")
    setup(log_dir=args.log_dir, level="DEBUG" if args.verbose else config.log_level)

    try:
        prototype = [parse_field_spec(s) for s in (args.fields or DEFAULT_FIELDS)]
    except ValueError as e:
        p.error(str(e))

    guid = args.guid or str(uuid.uuid4())
    try:
        meta = write_section(Path(args.input), Path(args.output), prototype, guid, config)
    except (CVSectionError, OSError) as e:
        log.error(f"[FAIL] {args.input}: {e}")
        return 2

    log.info(f"[DONE] {args.output}: {meta['records']} points in {meta['packets']} packets, "
             f"{meta['section_length']} bytes in {meta['elapsed_sec']}s")
    if args.metadata:
        atomic_write_json(Path(args.metadata), meta)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
