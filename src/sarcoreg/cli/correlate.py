from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import replace

from ..correlate.pipeline import METHODS, CorrelationConfig, Correlator, stack_pairs
from ..core.spectral import BACKENDS
from ..data.io_patches import load_patch_pair, offsets_to_records, write_offsets
from ..data.simulate import shifted_pair
from ..errors import CoregistrationError
from ..utils.config import dump_config, load_config
from ..utils.logging import PROGRESS_ENV, log_fft_env, setup_logging


def build_config(args: argparse.Namespace) -> CorrelationConfig:
    cfg = CorrelationConfig.from_dict(load_config(args.config)) if args.config else CorrelationConfig()
    overrides = {
        "method": args.method,
        "oversampling": args.oversampling,
        "acc_l": args.acc_l,
        "acc_p": args.acc_p,
        "fft_backend": args.backend,
        "score_threshold": args.threshold,
    }
    return replace(cfg, **{k: v for k, v in overrides.items() if v is not None})


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Sub-pixel offset between master/mask complex patches")
    src = p.add_mutually_exclusive_group(required=True)
    src.add_argument("--input", help="Patch pair: .npz or HDF5 with 'master' and 'mask' (2D or stacked 3D)")
    src.add_argument("--demo", type=int, nargs=2, metavar=("SHIFT_L", "SHIFT_P"),
                     help="Correlate a simulated speckle pair offset by an integer shift")
    p.add_argument("--demo-size", type=int, default=64, help="Patch size for --demo (power of 2)")
    p.add_argument("--config", default=None, help="JSON/YAML config (optionally under a 'correlation' key)")
    p.add_argument("--method", choices=list(METHODS), default=None)
    p.add_argument("--oversampling", type=int, default=None, help="Power-of-2 oversampling factor")
    p.add_argument("--acc-l", type=int, default=None, help="Accuracy window (lines)")
    p.add_argument("--acc-p", type=int, default=None, help="Accuracy window (pixels)")
    p.add_argument("--backend", choices=list(BACKENDS), default=None, help="FFT backend")
    p.add_argument("--threshold", type=float, default=None, help="Flag peaks below this score as not accepted")
    p.add_argument("--workers", type=int, default=1, help="Threads for stacked inputs")
    p.add_argument("--out", default=None, help="Write offsets as JSON")
    p.add_argument("--progress", action="store_true", help="Show progress bars if tqdm is available")
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args(argv)

    setup_logging(args.log_level)
    if args.progress:
        os.environ[PROGRESS_ENV] = "1"

    try:
        cfg = build_config(args)
    except ValueError as exc:
        p.error(str(exc))
    log_fft_env(cfg.fft_backend)
    logging.info("Correlation config: %s", dump_config(cfg))

    try:
        if args.input:
            master, mask = load_patch_pair(args.input)
        else:
            n = int(args.demo_size)
            master, mask = shifted_pair((n, n), (args.demo[0], args.demo[1]), seed=0, smooth=1.0)
        pairs = stack_pairs(master, mask)
    except (KeyError, ValueError) as exc:
        p.error(str(exc))

    try:
        results = Correlator(cfg).correlate_many(pairs, workers=args.workers)
    except CoregistrationError as exc:
        logging.error("Correlation rejected the input: %s", exc)
        return 2
    records = offsets_to_records(results)
    json.dump(records, sys.stdout, indent=2)
    sys.stdout.write("\n")
    if args.out:
        write_offsets(args.out, results, config=dump_config(cfg))
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
