#!/usr/bin/env python3
"""
audiofit Test Runner

Usage:
    python test.py            # Run all tests
    python test.py quick      # Skip tests that run FFmpeg
    python test.py coverage   # Run with coverage report
    python test.py failed     # Re-run the last failures
    python test.py controller # Run tests/test_controller.py, or tests matching the word
"""

import os
import subprocess
import sys


def build_command(args):
    cmd = [sys.executable, "-m", "pytest", "tests/"]

    if not args:
        cmd.extend(["-v", "--tb=short"])
        print("[TEST] Running all tests...\n")
    elif args[0] == "quick":
        cmd.extend(["-v", "--tb=short", "-m", "not slow"])
        print("[QUICK] Running tests that need no FFmpeg...\n")
    elif args[0] == "coverage":
        cmd.extend(["--cov=audiofit", "--cov-report=term-missing", "-v"])
        print("[COVERAGE] Running tests with coverage report...\n")
    elif args[0] == "failed":
        cmd.extend(["--lf", "-v"])
        print("[RETRY] Re-running failed tests...\n")
    else:
        name = args[0]
        test_file = f"tests/test_{name}.py"
        if os.path.exists(test_file):
            cmd = [sys.executable, "-m", "pytest", test_file, "-v", "--tb=short"]
            print(f"[MODULE] Running tests for {name}...\n")
        else:
            cmd.extend(["-v", "--tb=short", "-k", name])
            print(f"[FILTER] Running tests matching '{name}'...\n")

    return cmd


def main():
    os.chdir(os.path.dirname(os.path.abspath(__file__)))
    cmd = build_command(sys.argv[1:])

    try:
        result = subprocess.run(cmd)
    except KeyboardInterrupt:
        print("\n[ABORT] Tests interrupted")
        return 1

    print("\n" + "=" * 60)
    if result.returncode == 0:
        print("[PASS] All tests passed")
    else:
        print(f"[FAIL] Tests failed (exit code: {result.returncode})")
    print("=" * 60)
    return result.returncode


if __name__ == "__main__":
    sys.exit(main())
