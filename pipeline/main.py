import argparse
import traceback
from pathlib import Path
from datetime import datetime
from typing import List, Dict, Any, Optional

from tqdm import tqdm

from data.loaders import load_table
from data.filters import FilterPredicate
from data.exporters import ResultsExporter
from pipeline.config import AnalysisConfig
from pipeline.engine import AnalysisEngine, ANALYSIS_TYPES


def load_config(config_path: Optional[str]) -> AnalysisConfig:
    if config_path is None:
        return AnalysisConfig()
    print(f"    Found config at: {Path(config_path).absolute()}")
    return AnalysisConfig.from_yaml(config_path)


def build_requests(args: argparse.Namespace, config: AnalysisConfig) -> List[Dict[str, Any]]:
    """Requests from the command line, or the configured batch when --analysis is not given."""
    if args.analysis:
        parameters: Dict[str, Any] = {}
        if args.right_columns:
            parameters['right_columns'] = args.right_columns
        if args.x_axis:
            parameters['x_axis'] = args.x_axis
        if args.algorithm:
            parameters['algorithm'] = args.algorithm
        return [{
            'type': args.analysis,
            'columns': args.columns or [],
            'parameters': parameters,
            'filters': [],
        }]
    return config.analyses


def summarize(name: str, result: Any) -> str:
    frame = result.to_frame()
    return f"{name}: {result.kind} -> {len(frame)} row(s)"


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run analyses over a tabular data file")
    parser.add_argument("data_file", help="CSV, TSV or Excel file")
    parser.add_argument("--config", help="YAML configuration file")
    parser.add_argument("--analysis", choices=ANALYSIS_TYPES, help="Single analysis to run")
    parser.add_argument("--columns", nargs="+", help="Selected columns")
    parser.add_argument("--right-columns", nargs="+", help="Second column set for canonical correlation")
    parser.add_argument("--x-axis", help="Ordering/time column for timeseries and changepoint")
    parser.add_argument("--algorithm", help="Change-point algorithm")
    parser.add_argument("--export", help="Output path (Excel file or CSV directory)")
    parser.add_argument("--format", choices=['excel', 'csv'], help="Export format")
    args = parser.parse_args(argv)

    print("🚀 Starting Analysis...")
    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        print(f"❌ CONFIG ERROR: {e}")
        return 2

    # --- PHASE 1: DATA ---
    print("\n[PHASE 1] Data Loading")
    try:
        table = load_table(args.data_file)
    except (OSError, ValueError) as e:
        print(f"❌ DATA ERROR: {e}")
        return 2
    print(f"    Loaded {table}")

    requests = build_requests(args, config)
    if not requests:
        print("❌ No analyses requested (use --analysis or the 'analyses' config list).")
        return 2

    # --- PHASE 2: ANALYSIS ---
    print("\n[PHASE 2] Analysis Loop")
    engine = AnalysisEngine(config)
    results: Dict[str, Any] = {}
    failures = 0

    for i, request in enumerate(tqdm(requests, desc="Analyzing")):
        try:
            filters = [FilterPredicate.from_dict(f) for f in request.get('filters', [])]
        except (KeyError, ValueError) as e:
            print(f"    ❌ FAILED {request['type']}: bad filter ({e})")
            failures += 1
            continue

        outcome = engine.try_run(
            request['type'],
            table,
            request['columns'],
            parameters=request.get('parameters'),
            filters=filters
        )

        name = request.get('name') or f"{i + 1}_{request['type']}"
        if outcome.ok:
            results[name] = outcome.result
            print(f"    ✅ {summarize(name, outcome.result)}")
        else:
            failures += 1
            print(f"    ❌ FAILED {name}: {outcome.error}")

    # --- PHASE 3: EXPORT ---
    if results and (args.export or config.analyses):
        print("\n[PHASE 3] Export")
        export_format = args.format or config.export_format
        output_path = args.export or str(Path(config.output_dir) / f"{table.name}_analysis")
        try:
            exporter = ResultsExporter(output_path, format=export_format)
            exporter.export_results(results, metadata={
                'table': table.name,
                'rows': table.n_rows,
                'analyses': len(requests),
                'failed': failures,
                'created': datetime.now().isoformat(timespec='seconds'),
            })
        except (OSError, ValueError) as e:
            print(f"❌ EXPORT ERROR: {e}")
            traceback.print_exc()
            return 1

    print(f"\n✅ Finished: {len(results)} succeeded, {failures} failed.")
    return 0 if failures == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
