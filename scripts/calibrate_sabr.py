#!/usr/bin/env python3
"""Production script: fit SABR smiles from market IV data.

Usage
-----
    python scripts/calibrate_sabr.py --input market_data.csv --output fitted.json
    python scripts/calibrate_sabr.py --input market_data.csv --output fitted.json --beta 0.7
    python scripts/calibrate_sabr.py --input market_data.csv --output fitted.json --plot smile.png

Input CSV format
----------------
    expiry,strike,forward,iv
    1.0,0.020,0.030,0.31
    1.0,0.025,0.030,0.27
    ...

Output JSON format
------------------
    {
      "1.0": {"alpha": ..., "beta": ..., "nu": ..., "rho": ..., "forward": ...,
              "rmse": ..., "end_criteria": "StationaryFunctionValue"},
      ...
    }
"""

from __future__ import annotations
import argparse
import csv
import json
import logging
import sys
from collections import defaultdict
from pathlib import Path

import numpy as np

# Allow running from repo root: python scripts/calibrate_sabr.py
sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

from quantmath import QuantMathError, configure_logging
from quantmath.calibration import SabrParams, fit_sabr


def _read_csv(path: str):
    """Read market data CSV and group by expiry."""
    strikes_by_T: dict[float, list[float]] = defaultdict(list)
    ivs_by_T: dict[float, list[float]] = defaultdict(list)
    fwd_by_T: dict[float, float] = {}

    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            T = float(row["expiry"])
            strikes_by_T[T].append(float(row["strike"]))
            ivs_by_T[T].append(float(row["iv"]))
            fwd_by_T[T] = float(row["forward"])

    return {
        T: np.array(strikes_by_T[T]) for T in sorted(strikes_by_T)
    }, fwd_by_T, {
        T: np.array(ivs_by_T[T]) for T in sorted(ivs_by_T)
    }


def main():
    parser = argparse.ArgumentParser(
        description="Fit SABR smiles to market IV data."
    )
    parser.add_argument("--input", required=True, help="Path to market data CSV")
    parser.add_argument("--output", required=True, help="Path to output JSON")
    parser.add_argument("--beta", type=float, default=0.5, help="Fixed SABR beta")
    parser.add_argument("--free-beta", action="store_true",
                        help="Calibrate beta together with alpha, nu, rho")
    parser.add_argument("--plot", default=None, help="Save fitted-vs-market plot to PNG")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    configure_logging(logging.DEBUG if args.verbose else logging.INFO,
                      handlers=[logging.StreamHandler()],
                      format_string="%(levelname)s %(name)s: %(message)s")

    # Read data
    strikes_by_T, fwd_by_T, ivs_by_T = _read_csv(args.input)
    print(f"Loaded {sum(len(v) for v in strikes_by_T.values())} quotes "
          f"across {len(strikes_by_T)} expiries.")

    # Fit SABR per expiry
    results: dict[str, dict] = {}
    for T in sorted(strikes_by_T):
        try:
            sabr, reason = fit_sabr(strikes_by_T[T], fwd_by_T[T], T, ivs_by_T[T],
                                    beta=args.beta, fix_beta=not args.free_beta)
        except QuantMathError as exc:
            print(f"  T={T:.4f}: calibration failed: {exc}")
            continue
        fitted_ivs = sabr.iv(strikes_by_T[T])
        rmse = float(np.sqrt(np.mean((fitted_ivs - ivs_by_T[T]) ** 2)))
        results[str(T)] = {
            "alpha": sabr.alpha, "beta": sabr.beta, "nu": sabr.nu,
            "rho": sabr.rho, "forward": sabr.forward, "rmse": rmse,
            "end_criteria": str(reason),
        }
        print(f"  T={T:.4f}: alpha={sabr.alpha:.5f} beta={sabr.beta:.3f} "
              f"nu={sabr.nu:.4f} rho={sabr.rho:.4f} RMSE={rmse:.6f} ({reason})")

    # Write JSON
    with open(args.output, "w") as f:
        json.dump(results, f, indent=2)
    print(f"\nFitted params written to {args.output}")

    # Optional plot
    if args.plot and results:
        import matplotlib.pyplot as plt

        fig, axes = plt.subplots(1, len(results), figsize=(5 * len(results), 4),
                                 squeeze=False)
        for i, (T_str, params) in enumerate(sorted(results.items())):
            T = float(T_str)
            ax = axes[0, i]
            sabr = SabrParams(alpha=params["alpha"], beta=params["beta"],
                              nu=params["nu"], rho=params["rho"],
                              expiry=T, forward=params["forward"])
            K_market = strikes_by_T[T]
            K_fine = np.linspace(K_market.min(), K_market.max(), 200)

            ax.plot(K_market, ivs_by_T[T], "o", label="Market", markersize=4)
            ax.plot(K_fine, sabr.iv(K_fine), "-", label="SABR fit")
            ax.set_title(f"T = {T}")
            ax.set_xlabel("strike")
            ax.set_ylabel("Implied Vol")
            ax.legend()

        plt.tight_layout()
        plt.savefig(args.plot, dpi=150)
        print(f"Plot saved to {args.plot}")


if __name__ == "__main__":
    main()
