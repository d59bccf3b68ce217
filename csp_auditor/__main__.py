"""
CSP Auditor CLI
"""
import argparse
import asyncio
import sys
from pathlib import Path

from csp_auditor.config.loader import ConfigError, load_settings
from csp_auditor.fetch import FetchError, fetch_document, load_document
from csp_auditor.logging_config import setup_logging
from csp_auditor.models.recommendation import BEST_PRACTICES
from csp_auditor.policy.auditor import PolicyAuditor
from csp_auditor.policy.directives import explain_token


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="CSP Auditor - recommend a minimal Content-Security-Policy for a page",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Audit a live page
  python -m csp_auditor audit https://example.com

  # Audit a saved page as if it were served from its real origin
  python -m csp_auditor audit page.html --base-url https://example.com/

  # Skip the settle window and emit JSON
  python -m csp_auditor audit https://example.com --settle-ms 0 --format json
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    audit_parser = subparsers.add_parser('audit', help='Audit a page and recommend a CSP')
    audit_parser.add_argument('target', help='URL (http/https) or path to an HTML file')
    audit_parser.add_argument('--base-url', help='Document URL to resolve a local file against')
    audit_parser.add_argument('--settle-ms', type=int, help='Settle window in milliseconds')
    audit_parser.add_argument('--format', choices=['text', 'json'], default='text',
                              help='Output format')
    audit_parser.add_argument('--output', help='Output file for the recommendation')
    audit_parser.add_argument('--all-directives', action='store_true',
                              help='Also emit directives that only hold their baseline token')
    audit_parser.add_argument('--config', help='YAML settings file')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = load_settings(args.config)
    except ConfigError as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    setup_logging(log_level=settings.log_level, json_format=settings.log_json)

    try:
        if args.command == 'audit':
            return asyncio.run(cmd_audit(args, settings))
    except FetchError as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    return 0


async def cmd_audit(args, settings):
    """Execute audit command"""
    if args.target.startswith(('http://', 'https://')):
        document = await fetch_document(
            args.target,
            timeout=settings.fetch_timeout,
            user_agent=settings.user_agent,
        )
    else:
        document = load_document(args.target, base_url=args.base_url)

    overrides = {}
    if args.settle_ms is not None:
        overrides['settle_ms'] = args.settle_ms
    if args.all_directives:
        overrides['emit_defaults'] = True

    auditor = PolicyAuditor.from_settings(document, settings, **overrides)
    recommendation = await auditor.run()

    if args.format == 'json':
        output = recommendation.model_dump_json(indent=2)
    else:
        output = generate_text_report(recommendation)

    if args.output:
        output_path = Path(args.output)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(output)
        print(f"\nRecommendation saved to {output_path}")
    else:
        print(output)

    return 0


def generate_text_report(recommendation):
    """Generate text report"""
    report = "=" * 80 + "\n"
    report += "RECOMMENDED CONTENT-SECURITY-POLICY\n"
    report += "=" * 80 + "\n"
    report += f"Page: {recommendation.url}\n\n"

    for line in recommendation.policy_lines():
        report += f"  {line}\n"

    report += "\nHeader:\n"
    report += f"  Content-Security-Policy: {recommendation.header_value()}\n"
    report += f"  Report-To: {recommendation.report_to_header()}\n"

    report += "\nWhy each source is allowed:\n"
    report += "-" * 80 + "\n"
    for directive in recommendation.directives:
        allowed = set(recommendation.all_directives.get(directive, []))
        for token, reasons in recommendation.justifications.get(directive, {}).items():
            if token not in allowed:
                continue
            report += f"{directive} {token}\n"
            explanation = explain_token(token)
            if explanation:
                report += f"  ({explanation})\n"
            for reason in reasons:
                report += f"  - {reason}\n"

    report += "\nNotes:\n"
    for note in recommendation.advisories():
        report += f"  * {note}\n"
    for i, usage in enumerate(recommendation.data_uris, 1):
        report += f"  #{i} [{usage.kind}] {usage.context[:120]}\n"

    report += "\nBest practices:\n"
    for tip in BEST_PRACTICES:
        report += f"  - {tip}\n"

    return report


if __name__ == '__main__':
    sys.exit(main())
