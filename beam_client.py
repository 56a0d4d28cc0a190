import argparse
import base64
import dataclasses
import json
import sys
from typing import Dict, List, Optional

from beam_core import (
    AccessOrchestrator,
    BeamError,
    BeamSettings,
    NodeDirectory,
)


def _jsonable(value):
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {_camel(f.name): _jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, bytes):
        return value.hex()
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    return value


def _camel(name: str) -> str:
    return "".join(part.capitalize() for part in name.split("_"))


def _payloads_as_base64(blocks: List[Dict[str, object]]) -> None:
    # Event payloads are opaque; emit them base64 encoded rather than hex.
    for block in blocks:
        for event in block.get("Events", []):
            event["Payload"] = base64.b64encode(bytes.fromhex(event["Payload"])).decode("ascii")


def _envelope(result, key: Optional[str]) -> Dict[str, object]:
    if result.error is not None:
        return {"ApiCalls": result.api_calls, "Error": str(result.error)}
    if key is None:
        body = {"Blocks": _jsonable(result.blocks)}
        _payloads_as_base64(body["Blocks"])
        body["ApiCalls"] = result.api_calls
        return body
    value = _jsonable(result.value)
    if isinstance(value, dict) and "Events" in value:
        _payloads_as_base64([value])
    return {"ApiCalls": result.api_calls, key: value}


def _decode_id(raw: str) -> bytes:
    try:
        return bytes.fromhex(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"'{raw}' is not a hex identifier") from exc


def run(args: argparse.Namespace, orchestrator: AccessOrchestrator) -> Dict[str, object]:
    if args.command == "events":
        return _envelope(orchestrator.collect_events(args.event_type, args.start, args.end), None)
    if args.command == "latest":
        return _envelope(orchestrator.get_latest_block_height(), "LatestBlockHeight")
    if args.command == "block":
        return _envelope(orchestrator.get_block_by_height(args.height, at_height=args.at_height), "Block")
    if args.command == "collection":
        return _envelope(orchestrator.get_collection_by_id(args.id, at_height=args.at_height), "Collection")
    if args.command == "transaction":
        return _envelope(orchestrator.get_transaction_result(args.id, at_height=args.at_height), "Result")
    if args.command == "script":
        with open(args.script_file, "r", encoding="utf-8") as stream:
            script = stream.read()
        arguments = [json.dumps(json.loads(arg)).encode("utf-8") for arg in args.arg]
        envelope = _envelope(orchestrator.execute_script(script, arguments), "Result")
        if "Result" in envelope:
            envelope["Result"] = base64.b64encode(bytes.fromhex(envelope["Result"])).decode("ascii")
        return envelope
    raise ValueError(f"Unknown command: {args.command}")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Query access nodes across height eras.")
    parser.add_argument("--nodes", default=None, help="Path to access nodes JSON (overrides ACCESS_NODES).")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("nodes", help="List configured access nodes.")

    events = sub.add_parser("events", help="Events of one type over a height range.")
    events.add_argument("event_type")
    events.add_argument("start", type=int)
    events.add_argument("end", type=int)

    sub.add_parser("latest", help="Latest sealed block height.")

    block = sub.add_parser("block", help="Block by height.")
    block.add_argument("height", type=int)
    block.add_argument("--at-height", type=int, default=None, help="Ask the node covering this height.")

    for name in ("collection", "transaction"):
        lookup = sub.add_parser(name, help=f"{name.capitalize()} by hex id.")
        lookup.add_argument("id", type=_decode_id)
        lookup.add_argument("--at-height", type=int, default=None, help="Ask the node covering this height.")

    script = sub.add_parser("script", help="Execute a script at the latest block.")
    script.add_argument("script_file")
    script.add_argument("--arg", action="append", default=[], help="JSON-Cadence encoded argument.")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    try:
        settings = BeamSettings.from_env()
        if args.nodes:
            settings = dataclasses.replace(settings, access_nodes_path=args.nodes)
        directory = NodeDirectory.from_settings(settings)
        if args.command == "nodes":
            for line in directory.describe():
                print(line)
            return 0
        envelope = run(args, AccessOrchestrator(directory, settings))
    except (BeamError, OSError, ValueError) as exc:
        print(json.dumps({"ApiCalls": 0, "Error": str(exc)}))
        return 1

    print(json.dumps(envelope))
    return 1 if "Error" in envelope else 0


if __name__ == "__main__":
    sys.exit(main())
