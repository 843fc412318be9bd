"""
Command-line entry points.

Usage:
    python -m goldilocks_poseidon derive --round-constants rc.json --output params.json
    python -m goldilocks_poseidon derive --reference --output params.json
    python -m goldilocks_poseidon derive --random-seed 0 --output dev-params.json
    python -m goldilocks_poseidon hash --params params.json --input words.json [--lanes 8]
    python -m goldilocks_poseidon merkle-root --params params.json --input leaves.json

Input files are JSON lists of 64-bit words (ints or "0x..." strings), four
words per hash job. $GOLDILOCKS_POSEIDON_PARAMS is used when --params is
omitted.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from .batch import hash_batch
from .errors import GoldilocksPoseidonError
from .merkle import MerkleTree
from .params import (
    REFERENCE_MDS_MATRIX_CIRC,
    REFERENCE_MDS_MATRIX_DIAG,
    PoseidonParams,
    grain_round_constants,
    load_params,
    random_round_constants,
)
from .poseidon import Poseidon
from .sponge import NUM_HASH_OUT_ELTS
from .wide import MASK64

logger = logging.getLogger(__name__)


def _parse_word(where: str, v) -> int:
    if isinstance(v, str):
        v = int(v, 0)
    elif not isinstance(v, int) or isinstance(v, bool):
        raise ValueError(f"{where}: expected an integer, got {v!r}")
    if not 0 <= v <= MASK64:
        raise ValueError(f"{where}: {v} is not a 64-bit word")
    return v


def _read_words(path: Path) -> List[int]:
    with open(path, 'r') as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of words")
    return [_parse_word(f"{path}[{i}]", v) for i, v in enumerate(data)]


def _read_mds(path: Path) -> Tuple[List[int], List[int]]:
    with open(path, 'r') as f:
        mds = json.load(f)
    if not isinstance(mds, dict) or not all(isinstance(mds.get(key), list) for key in ("circ", "diag")):
        raise ValueError(f'{path}: expected a JSON object with "circ" and "diag" lists')
    circ = [_parse_word(f"{path}: circ[{i}]", v) for i, v in enumerate(mds["circ"])]
    diag = [_parse_word(f"{path}: diag[{i}]", v) for i, v in enumerate(mds["diag"])]
    return circ, diag


def _write_json(data, output: Optional[Path]) -> None:
    if output is None:
        json.dump(data, sys.stdout)
        sys.stdout.write("\n")
    else:
        with open(output, 'w') as f:
            json.dump(data, f, indent=2)


def cmd_derive(args: argparse.Namespace) -> int:
    if args.round_constants is not None:
        round_constants = _read_words(args.round_constants)
    elif args.reference:
        round_constants = grain_round_constants()
    else:
        logger.warning("Using random development round constants (seed=%d); digests are not interoperable",
                       args.random_seed)
        round_constants = random_round_constants(args.random_seed)

    circ, diag = REFERENCE_MDS_MATRIX_CIRC, REFERENCE_MDS_MATRIX_DIAG
    if args.mds is not None:
        circ, diag = _read_mds(args.mds)

    params = PoseidonParams.derive(round_constants, circ, diag)
    params.to_json(args.output)
    return 0


def cmd_hash(args: argparse.Namespace) -> int:
    permutation = Poseidon(load_params(args.params))
    words = _read_words(args.input)
    digests = hash_batch(permutation, words, lane_count=args.lanes)
    out = [[int(x) for x in digests[i:i + NUM_HASH_OUT_ELTS]] for i in range(0, len(digests), NUM_HASH_OUT_ELTS)]
    _write_json(out, args.output)
    return 0


def cmd_merkle_root(args: argparse.Namespace) -> int:
    permutation = Poseidon(load_params(args.params))
    tree = MerkleTree.build(permutation, _read_words(args.input), lane_count=args.lanes)
    _write_json(list(tree.get_root().to_u64s()), args.output)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="goldilocks-poseidon",
        description="Width-12 Poseidon hashing over the Goldilocks field",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    derive = sub.add_parser("derive", help="Derive a full parameter file from round constants")
    source = derive.add_mutually_exclusive_group(required=True)
    source.add_argument("--round-constants", type=Path, help="JSON list of N_ROUNDS * 12 round constants")
    source.add_argument("--reference", action="store_true", help="Use the reference Grain round constants")
    source.add_argument("--random-seed", type=int, help="Generate development round constants")
    derive.add_argument("--mds", type=Path, help='JSON object {"circ": [...], "diag": [...]}')
    derive.add_argument("--output", type=Path, required=True)
    derive.set_defaults(func=cmd_derive)

    for name, func, help_text in (
        ("hash", cmd_hash, "Hash 4-word chunks into 4-word digests"),
        ("merkle-root", cmd_merkle_root, "Merkle root over 4-word leaves"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--params", type=Path, default=None, help="Parameter JSON file")
        p.add_argument("--input", type=Path, required=True)
        p.add_argument("--lanes", type=int, default=None, help="Number of parallel lanes")
        p.add_argument("--output", type=Path, default=None)
        p.set_defaults(func=func)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (GoldilocksPoseidonError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
