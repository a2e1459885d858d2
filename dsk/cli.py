# (C) 2025 Rodrigo Rodrigues da Silva <rodrigopitanga@posteo.net>
# SPDX-License-Identifier: GPL-3.0-or-later

from __future__ import annotations
import argparse, asyncio, json, pathlib
from dsk import log as ops_log
from dsk.client import Client
from dsk.config import get_cfg, reload_cfg
from dsk.log import setup_logging

# httpx transport handed to every client the CLI builds (None = network)
transport = None

def _client(args) -> Client:
    try:
        return Client.from_config(
            get_cfg(), transport=transport,
            api_key=args.api_key, base_url=args.base_url,
        )
    except ValueError as e:
        raise SystemExit(str(e))

def _json_arg(raw: str | None, what: str):
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise SystemExit(f"invalid JSON for {what}: {e}")

def cmd_list(client: Client, args):
    return client.list_documents(args.limit, args.offset)

def cmd_get(client: Client, args):
    return client.get_document_by_id(args.id)

def cmd_delete(client: Client, args):
    return client.delete_document_by_id(args.id)

def cmd_create(client: Client, args):
    if args.file:
        documents = _json_arg(pathlib.Path(args.file).read_text(encoding="utf-8"), args.file)
        if isinstance(documents, dict):
            documents = documents.get("documents", [documents])
    else:
        doc = {"url": args.url, "description": args.description,
               "metadata": _json_arg(args.metadata, "--metadata")}
        documents = [{k: v for k, v in doc.items() if v is not None}]
    return client.create_documents(documents)

def cmd_search(client: Client, args):
    return client.search_documents(
        url=args.url, description=args.description,
        threshold=args.threshold, top_k=args.top_k,
    )

def cmd_recommend(client: Client, args):
    return client.get_recommendations(args.id, top_k=args.top_k, threshold=args.threshold)

def main_cli(argv=None):
    p = argparse.ArgumentParser(prog="dskcli")
    p.add_argument("--config", help="YAML config file (default: $DOCSEEK_CONFIG or ./docseek.yml)")
    p.add_argument("--api-key", help="overrides api_key / DOCSEEK_API_KEY")
    p.add_argument("--base-url", help="overrides base_url / DOCSEEK_BASE_URL")
    p.add_argument("--ops-log", help="ops stream destination: 'stdout', 'stderr' or a file path")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging to stderr")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_list = sub.add_parser("list")
    p_list.add_argument("--limit", type=int)
    p_list.add_argument("--offset", type=int)
    p_list.set_defaults(func=cmd_list)

    p_get = sub.add_parser("get")
    p_get.add_argument("id")
    p_get.set_defaults(func=cmd_get)

    p_delete = sub.add_parser("delete")
    p_delete.add_argument("id")
    p_delete.set_defaults(func=cmd_delete)

    p_create = sub.add_parser("create")
    p_create.add_argument("--url")
    p_create.add_argument("--description")
    p_create.add_argument("--metadata", help='JSON object, e.g. {"lang":"pt"}')
    p_create.add_argument("--file",
                          help="JSON file holding a list of documents (or {\"documents\": [...]})")
    p_create.set_defaults(func=cmd_create)

    p_search = sub.add_parser("search")
    p_search.add_argument("--url")
    p_search.add_argument("--description")
    p_search.add_argument("--threshold", type=float)
    p_search.add_argument("-k", "--top-k", type=int)
    p_search.set_defaults(func=cmd_search)

    p_rec = sub.add_parser("recommend")
    p_rec.add_argument("id")
    p_rec.add_argument("-k", "--top-k", type=int)
    p_rec.add_argument("--threshold", type=float)
    p_rec.set_defaults(func=cmd_recommend)

    args = p.parse_args(argv)
    if args.config:
        reload_cfg(args.config)
    setup_logging("DEBUG" if args.verbose else None)
    ops_log.configure(args.ops_log or get_cfg().get("log.ops"))

    client = _client(args)
    try:
        res = asyncio.run(args.func(client, args))
    finally:
        ops_log.close()
    print(json.dumps(res.model_dump(mode="json"), ensure_ascii=False))
    return 0 if res.ok else 1

if __name__ == "__main__":
    raise SystemExit(main_cli())
