"""
runs the whole batch in order: (generate) -> load -> normalize -> query -> report.
re-run end to end if anything fails, there's no partial recovery.
"""

import argparse
import os
import sys
import time
from contextlib import closing
from dataclasses import replace

# put src on the path
sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), 'src'))

from analytics import run_all_queries
from config import PipelineConfig
from data_generator import add_dirty_values, generate_transactions, save_data
from db_utils import create_indexes, create_schema, drop_all, get_connection, table_counts
from errors import ConfigError, PipelineError
from loader import clear_staging, load_csv
from logging_setup import configure_logging
from normalizer import normalize_staging
from report_generator import create_excel_report


def banner(title):
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def build_parser():
    parser = argparse.ArgumentParser(description="UPI transactions batch: load, normalize, analyse")
    parser.add_argument('--csv', help="raw 16-column CSV (generated if missing)")
    parser.add_argument('--db', help="sqlite database file")
    parser.add_argument('--report', help="Excel report output path")
    parser.add_argument('--rows', type=int, help="rows to generate when no CSV exists")
    parser.add_argument('--fresh', action='store_true',
                        help="drop staging and target tables before loading")
    parser.add_argument('--log-level', default=None, help="DEBUG, INFO, WARNING...")
    return parser


def run(config, fresh=False):
    start = time.time()

    with closing(get_connection(config.db_path)) as conn:
        if fresh:
            drop_all(conn)
        create_schema(conn)

        # Step 1: raw data
        if not os.path.exists(config.raw_csv):
            banner("STEP 1: GENERATING SYNTHETIC RAW CSV")
            df = add_dirty_values(generate_transactions(config.num_transactions))
            save_data(df, os.path.dirname(os.path.abspath(config.raw_csv)),
                      os.path.basename(config.raw_csv))

        # Step 2: staging
        banner("STEP 2: LOADING RAW ROWS INTO STAGING")
        if not fresh:
            clear_staging(conn)
        load_csv(conn, config.raw_csv)

        # Step 3: normalize + indexes
        banner("STEP 3: NORMALIZING INTO USERS / RECIPIENTS / TRANSACTIONS")
        normalize_staging(conn)
        create_indexes(conn)
        for table, count in table_counts(conn).items():
            print(f"  {table}: {count:,} rows")

        # Step 4: queries
        banner("STEP 4: RUNNING ANALYTICS QUERIES")
        results = run_all_queries(conn)
        print(f"Executed {len(results)} queries successfully")

    # Step 5: report
    banner("STEP 5: GENERATING EXCEL REPORT")
    create_excel_report(results, config.report_path)

    elapsed = time.time() - start
    banner(f"ALL DONE. Total time: {elapsed:.1f} seconds")
    print(f"\nOutput files:")
    print(f"  Raw data:      {config.raw_csv}")
    print(f"  Database:      {config.db_path}")
    print(f"  Excel report:  {config.report_path}")
    print(f"\nTo launch the dashboard:")
    print(f"  streamlit run dashboard/app.py")
    return results


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        config = PipelineConfig.from_env()
        overrides = {key: value for key, value in {
            'raw_csv': args.csv,
            'db_path': args.db,
            'report_path': args.report,
            'num_transactions': args.rows,
        }.items() if value is not None}
        if overrides.get('num_transactions', 1) <= 0:
            raise ConfigError(f"--rows must be positive, got {args.rows}")
        config = replace(config, **overrides)
        run(config, fresh=args.fresh)
    except PipelineError as e:
        print(f"\npipeline failed: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
