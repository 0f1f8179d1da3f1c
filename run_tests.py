#!/usr/bin/env python3
"""
AutoBone Test Runner

Runs tests with different configurations and generates reports.

Usage:
    python run_tests.py                    # Run all tests except benchmarks
    python run_tests.py --fast             # Skip slow tests
    python run_tests.py --benchmark        # Run only benchmarks
    python run_tests.py --report           # Also write test_report.json
"""

import subprocess
import sys
import argparse
import json
from pathlib import Path
from datetime import datetime


def run_tests(args: list) -> int:
    """Run pytest with given arguments."""
    cmd = [sys.executable, "-m", "pytest"] + args
    print(f"Running: {' '.join(cmd)}")
    return subprocess.call(cmd)


def get_system_info() -> dict:
    """Collect system information."""
    import platform

    import numpy as np
    import scipy

    return {
        'timestamp': datetime.now().isoformat(),
        'python_version': sys.version,
        'platform': platform.platform(),
        'machine': platform.machine(),
        'numpy': np.__version__,
        'scipy': scipy.__version__,
    }


def main():
    parser = argparse.ArgumentParser(description="AutoBone Test Runner")
    parser.add_argument('--fast', action='store_true',
                       help='Skip slow tests')
    parser.add_argument('--benchmark', action='store_true',
                       help='Run only benchmark tests')
    parser.add_argument('--verbose', '-v', action='store_true',
                       help='Verbose output')
    parser.add_argument('--report', action='store_true',
                       help='Generate JSON report')

    args = parser.parse_args()

    print("="*60)
    print("AUTOBONE TEST SUITE")
    print("="*60)

    info = get_system_info()
    print(f"Python: {sys.version.split()[0]}")
    print(f"Platform: {info['platform']}")
    print(f"NumPy: {info['numpy']}  SciPy: {info['scipy']}")
    print("="*60 + "\n")

    pytest_args = []

    if args.verbose:
        pytest_args.append('-v')

    if args.benchmark:
        pytest_args.extend(['-m', 'benchmark', '-v', '-s'])
    elif args.fast:
        pytest_args.extend(['-m', 'not slow and not benchmark'])
    else:
        pytest_args.extend(['-m', 'not benchmark'])

    result = run_tests(pytest_args)

    if args.report:
        report_path = Path("test_report.json")
        report = {
            'system_info': info,
            'exit_code': result,
            'args': vars(args),
        }

        with open(report_path, 'w') as f:
            json.dump(report, f, indent=2, default=str)

        print(f"\nReport saved to: {report_path}")

    return result


if __name__ == "__main__":
    sys.exit(main())
