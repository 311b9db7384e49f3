"""apply-my-lists creates input for the --servers-file option of dnsmasq.

It takes a big list of malicious domains, applies a personal block list and
a personal allow list, drops every domain that is already covered by a
shorter blocked domain, and writes one ``server=/domain/`` line per
remaining domain plus ``server=/domain/#`` for allowed subdomains of blocked
domains.
"""
import argparse
import datetime
import logging
import sys

from collector import build_directives, write_servers_file
from domains import ListError, OutputError
from pipeline import DEFAULT_QUEUE_SIZE, minimize
from sources import read_domains, read_list

logger = logging.getLogger("apply_my_lists")

# --- CONFIGURATION ---
DOMAINS_FILE = "/etc/hosts-blacklist"       # hosts format, file path or URL
BLACKLIST_FILE = "/tmp/my_blacklist"        # optional, one domain per line
WHITELIST_FILE = "/tmp/my_whitelist"        # optional, one domain per line
OUTPUT_FILE = "/etc/servers-blacklist"
HISTORY_FILE = "history.json"
QUEUE_SIZE = DEFAULT_QUEUE_SIZE


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="apply-my-lists", description=__doc__.splitlines()[0])
    parser.add_argument("--domains", default=DOMAINS_FILE, help="Main block list (path or http(s) URL)")
    parser.add_argument("--blacklist", default=BLACKLIST_FILE, help="Personal block list")
    parser.add_argument("--whitelist", default=WHITELIST_FILE, help="Personal allow list")
    parser.add_argument("--output", default=OUTPUT_FILE, help="dnsmasq servers file to write")
    parser.add_argument("--workers", type=int, default=None, help="Worker threads per phase")
    parser.add_argument("--stats-html", default=None, help="Also write an HTML run report")
    parser.add_argument("--history", default=HISTORY_FILE, help="Run history used by the report")
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log every removal and override")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    args = parser.parse_args(argv)
    if args.workers is not None and args.workers < 1:
        parser.error("--workers must be at least 1")
    return args


def setup_logging(verbose=False, quiet=False):
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s')


def write_report(args, result):
    # Imported here so that plain runs do not pay for pandas and plotly.
    from dashboard import build_partition_frame, generate_dashboard, save_history

    stats = {"date": datetime.date.today().isoformat(), "minimal": result.stats.minimal,
             "overrides": result.stats.overrides}
    df_main = build_partition_frame(result.partitions, result.minimal)
    try:
        history = save_history(args.history, stats)
        generate_dashboard(df_main, history, result.stats, args.stats_html)
    except OSError as e:
        raise OutputError(f"Error writing run report: {e}") from e


def run(args):
    # 1. Ingest
    domains = read_domains(args.domains)
    black = read_list(args.blacklist)
    white = read_list(args.whitelist)

    # 2. Minimize
    result = minimize(domains, black, white, workers=args.workers, queue_size=QUEUE_SIZE)

    # 3. Output
    write_servers_file(args.output, build_directives(result.minimal, result.overrides))
    if args.stats_html:
        write_report(args, result)
    return result


def main(argv=None):
    args = parse_args(argv)
    setup_logging(args.verbose, args.quiet)
    try:
        run(args)
    except ListError as e:
        logger.error("%s", e)
        return 1
    logger.info("Finished")
    return 0


if __name__ == "__main__":
    sys.exit(main())
