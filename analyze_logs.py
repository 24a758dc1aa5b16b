#!/usr/bin/env python3
"""Summarize the request log written by users_server.py.

Each request leaves four consecutive INFO lines: accept-charset value,
azat-header value, "URL:  <url>" and "METHOD:  <method>". Records are
rebuilt from that sequence, so lines interleaved by concurrent requests
may pair headers with the wrong URL.
"""

import re
import sys
from collections import Counter

line_pat = re.compile(r'^\S+ \S+ - users_server - (?P<level>[A-Z]+) -(?: (?P<msg>.*))?$')
url_pat = re.compile(r'^URL:  (?P<url>.*)$')
method_pat = re.compile(r'^METHOD:  (?P<method>.*)$')


def parse_logs(lines):
    records = []
    recent = []  # last two plain INFO messages
    pending = None

    for line in lines:
        m = line_pat.match(line.rstrip('\r\n'))
        if not m or m.group('level') != 'INFO':
            continue
        msg = m.group('msg') or ''

        m = url_pat.match(msg)
        if m:
            headers = ([''] * 2 + recent)[-2:]
            pending = {
                'accept_charset': headers[0],
                'custom_header': headers[1],
                'url': m.group('url'),
            }
            recent = []
            continue

        m = method_pat.match(msg)
        if m:
            if pending is not None:
                pending['method'] = m.group('method')
                records.append(pending)
                pending = None
            recent = []
            continue

        recent = (recent + [msg])[-2:]

    return records


def summarize(records):
    return {
        'total': len(records),
        'methods': Counter(r['method'] for r in records),
        'urls': Counter(r['url'] for r in records),
        'with_accept_charset': sum(1 for r in records if r['accept_charset']),
        'with_custom_header': sum(1 for r in records if r['custom_header']),
    }


def report(summary, top=20):
    print("=" * 60)
    print(f"REQUESTS: {summary['total']}")
    print("=" * 60)
    print(f"  with accept-charset: {summary['with_accept_charset']}")
    print(f"  with azat-header:    {summary['with_custom_header']}")

    print()
    print(f"{'METHOD':<12} {'Count':>8}")
    print("-" * 60)
    for method, count in summary['methods'].most_common():
        print(f"{method:<12} {count:>8}")

    print()
    print(f"TOP {top} URLS")
    print("-" * 60)
    for url, count in summary['urls'].most_common(top):
        print(f"{count:>8}  {url}")


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    filename = argv[0] if argv else 'users.log'
    with open(filename, encoding='utf-8', errors='replace') as f:
        records = parse_logs(f)
    report(summarize(records))
    return 0


if __name__ == '__main__':
    sys.exit(main())
