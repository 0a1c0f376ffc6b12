from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from tablepdf.config import configure_logging, get_settings
from tablepdf.errors import ParseError, TableExportError
from tablepdf.sample import SAMPLE_FILENAME, SAMPLE_OPTIONS, SAMPLE_TABLE_HTML
from tablepdf.service import ExportResult, get_export_service


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _result_payload(result: ExportResult, output_path: Path) -> dict:
    return {
        'status': 'ok',
        'output': str(output_path),
        'filename': f'{result.filename}.pdf',
        'backend': result.backend,
        'pages': result.page_count,
        'bytes': len(result.pdf_bytes),
        'attempts': [attempt.to_dict() for attempt in result.attempts],
    }


def _read_html(source: str) -> str:
    if source == '-':
        return sys.stdin.read()
    return Path(source).expanduser().read_text(encoding='utf-8')


def _export(table_html: str, filename: str | None, options: object, output: str | None) -> int:
    service = get_export_service()
    try:
        result = service.export(table_html, filename, options)
    except ParseError as exc:
        _print_json({'status': 'error', 'message': f'Invalid table: {exc}'})
        return 2
    except TableExportError as exc:
        _print_json({'status': 'error', 'message': str(exc)})
        return 1

    output_path = Path(output).expanduser() if output else Path(f'{result.filename}.pdf')
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.pdf_bytes)
    _print_json(_result_payload(result, output_path.resolve()))
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    try:
        table_html = _read_html(args.html)
    except OSError as exc:
        _print_json({'status': 'error', 'message': f'Cannot read HTML: {exc}'})
        return 2
    filename = args.filename or (Path(args.html).stem if args.html != '-' else None)
    return _export(table_html, filename, args.options, args.output)


def cmd_sample(args: argparse.Namespace) -> int:
    return _export(SAMPLE_TABLE_HTML, SAMPLE_FILENAME, SAMPLE_OPTIONS, args.output)


def cmd_fonts(args: argparse.Namespace) -> int:
    service = get_export_service()
    _print_json({'status': 'ok', 'fonts': service.fonts.describe(), 'backends': service.backend_status()})
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    from tablepdf.server import run_server

    run_server(host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Export HTML tables to paginated PDF documents')
    sub = parser.add_subparsers(dest='command', required=True)

    export = sub.add_parser('export', help='Render an HTML table file (or - for stdin) to PDF')
    export.add_argument('html', help='Path to an HTML file containing a <table>, or - for stdin')
    export.add_argument('--output', '-o', default=None, help='Output PDF path')
    export.add_argument('--filename', default=None, help='Document name (sanitized, without .pdf)')
    export.add_argument('--options', default=None, help='Render options as a JSON object')
    export.set_defaults(func=cmd_export)

    sample = sub.add_parser('sample', help='Render the built-in Persian sample table')
    sample.add_argument('--output', '-o', default=None, help='Output PDF path')
    sample.set_defaults(func=cmd_sample)

    fonts = sub.add_parser('fonts', help='Show which fonts and backends are available')
    fonts.set_defaults(func=cmd_fonts)

    serve = sub.add_parser('serve', help='Run the HTTP export API')
    serve.add_argument('--host', default=None)
    serve.add_argument('--port', type=int, default=None)
    serve.set_defaults(func=cmd_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)
    return int(args.func(args))


if __name__ == '__main__':
    raise SystemExit(main())
