"""CLI: assetgate-upload upload | verify | url | delete."""
import argparse
import json
import sys
from pathlib import Path

from .client import AssetGateClient


def main() -> int:
    parser = argparse.ArgumentParser(prog="assetgate-upload", description="Upload files through presigned grants")
    parser.add_argument("--base-url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--api-path", default="/api/upload", help="Upload endpoint path")
    sub = parser.add_subparsers(dest="command", required=True)

    # upload
    p_upload = sub.add_parser("upload", help="Upload local files")
    p_upload.add_argument("files", nargs="+", help="Local file paths to upload")
    p_upload.add_argument("--type", dest="upload_type", default=None, help="Upload type (default: default)")
    p_upload.add_argument("--metadata", default=None, help="JSON object attached to every asset")
    p_upload.add_argument("--verify", action="store_true", help="Verify each asset after upload")
    p_upload.set_defaults(func=cmd_upload)

    # verify / url / delete take asset ids
    for name, func, help_text in (
        ("verify", cmd_verify, "Verify uploaded assets"),
        ("url", cmd_url, "Get presigned download URLs"),
        ("delete", cmd_delete, "Delete assets and their objects"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("ids", nargs="+", help="Asset ids")
        p.set_defaults(func=func)

    args = parser.parse_args()
    client = AssetGateClient(base_url=args.base_url, api_path=args.api_path)
    try:
        return args.func(client, args)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        client.close()


def cmd_upload(client: AssetGateClient, args: argparse.Namespace) -> int:
    paths = [Path(f) for f in args.files]
    missing = [p for p in paths if not p.exists()]
    if missing:
        print(f"Missing files: {missing}", file=sys.stderr)
        return 1
    metadata = json.loads(args.metadata) if args.metadata else None
    result = {}
    for p in paths:
        grant = client.upload(p, upload_type=args.upload_type, metadata=metadata, verify=args.verify)
        result[p.name] = grant["id"]
        print(f"  {p.name} -> {grant['id']}", file=sys.stderr)
    print(json.dumps(result, indent=2))
    return 0


def cmd_verify(client: AssetGateClient, args: argparse.Namespace) -> int:
    print(json.dumps(client.verify(args.ids), indent=2))
    return 0


def cmd_url(client: AssetGateClient, args: argparse.Namespace) -> int:
    print(json.dumps(client.get_url(args.ids), indent=2))
    return 0


def cmd_delete(client: AssetGateClient, args: argparse.Namespace) -> int:
    print(json.dumps(client.delete(args.ids), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
