# run_experiments.py

import argparse
import json
import logging
import os
from itertools import combinations
from pathlib import Path
from typing import Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import scipy.stats as stats
from tqdm import tqdm

from splay_strategies import STRATEGIES, get_strategy
from splay_tree import SplayTree

# ==========================
# 1. Logging and Configuration
# ==========================

LOGGER_NAME = 'SplayExperiment'

DEFAULT_CONFIG = {
    'strategies': ['double', 'naive'],
    'pattern': 'random',
    'sizes': [1000, 2000, 5000, 10000, 20000, 50000],
    'finds_per_key': 5,
    'subset_size': 100,
    'seed': 42,
    'results_dir': 'results',
}


def setup_logging(log_file: str, level: int = logging.INFO) -> logging.Logger:
    """
    Sets up logging to both console and file with detailed formatting.

    Parameters:
        log_file (str): Path to the log file.
        level (int): Level of the console handler.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Capture all levels

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    # A later run with another log file replaces the previous file handler.
    log_path = os.path.abspath(log_file)
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler) and handler.baseFilename != log_path:
            logger.removeHandler(handler)
            handler.close()

    # Avoid duplicate logs
    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        ch = logging.StreamHandler()
        ch.setLevel(level)
        ch.setFormatter(formatter)
        logger.addHandler(ch)

    if not any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        os.makedirs(os.path.dirname(log_path), exist_ok=True)
        fh = logging.FileHandler(log_path)
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    return logger


logger = logging.getLogger(LOGGER_NAME)

# ==========================
# 2. Batch Files
# ==========================


class Batch(NamedTuple):
    size: int
    inserts: List[int]
    finds: List[int]


class BatchResult(NamedTuple):
    size: int
    find_count: int
    total_length: int
    average_length: float


def _parse_key(path: str, tokens: List[str], pos: int) -> int:
    """Key operand of the instruction at tokens[pos], token numbers in messages start at 1."""
    try:
        return int(tokens[pos + 1])
    except ValueError:
        message = (f"Invalid key {tokens[pos + 1]!r} for instruction {tokens[pos]!r} "
                   f"at token #{pos + 2} in '{path}'.")
        logger.error(message)
        raise ValueError(message) from None


def parse_batches(path: str) -> Iterator[Batch]:
    """
    Parses an instruction file into batches.

    A file starts with `#`, each batch is `<n>` followed by `n` instructions
    `I <key>` and any number of `F <key>`, and batches are separated by `#`.

    Parameters:
        path (str): Path to the instruction file.

    Yields:
        Batch: The next batch of the file.
    """
    try:
        with open(path, 'r') as f:
            tokens = f.read().split()
    except OSError as e:
        logger.error(f"Failed to read instructions from '{path}': {e}")
        raise

    if not tokens:
        logger.warning(f"Instruction file '{path}' is empty.")
        return
    if tokens[0] != '#':
        raise ValueError(f"Invalid token #1 in '{path}': {tokens[0]!r}, expected '#'.")

    pos = 1
    while pos < len(tokens):
        try:
            size = int(tokens[pos])
        except ValueError:
            logger.warning(f"Invalid batch size {tokens[pos]!r} in '{path}', stopping.")
            return
        pos += 1

        inserts = []
        while len(inserts) < size and pos + 1 < len(tokens):
            if tokens[pos] != 'I':
                logger.warning(f"Only {len(inserts)} inserts, expected {size}.")
                break
            inserts.append(_parse_key(path, tokens, pos))
            pos += 2

        finds = []
        while pos < len(tokens) and tokens[pos] != '#':
            if pos + 1 >= len(tokens):
                logger.warning(f"Instruction {tokens[pos]!r} at the end of '{path}' has no key.")
                pos += 1
                break
            if tokens[pos] == 'F':
                finds.append(_parse_key(path, tokens, pos))
            else:
                logger.warning(f"Skipping instruction {tokens[pos]!r} {tokens[pos + 1]!r} in find phase.")
            pos += 2
        pos += 1  # Batch separator.

        logger.debug(f"Parsed batch of {size} with {len(finds)} finds.")
        yield Batch(size, inserts, finds)


def run_batch(batch: Batch, strategy='double') -> Optional[BatchResult]:
    """
    Builds a fresh tree from the inserts of a batch and measures its finds.

    Returns:
        BatchResult: Find path statistics, or None when the batch has no finds.
    """
    tree = SplayTree(strategy)
    for key in batch.inserts:
        tree.insert(key)

    lengths = np.empty(len(batch.finds), dtype=np.int64)
    for i, key in enumerate(batch.finds):
        tree.find(key)
        lengths[i] = tree.length_of_last_find()
    tree.clear()

    if len(lengths) == 0:
        return None
    return BatchResult(batch.size, len(lengths), int(lengths.sum()), float(lengths.mean()))


def run_file(input_path: str, strategy='double') -> List[BatchResult]:
    """Runs every batch of an instruction file with the given strategy."""
    strategy = get_strategy(strategy)
    results = []
    for batch in tqdm(parse_batches(input_path), desc=f"Batches ({strategy.name})"):
        result = run_batch(batch, strategy)
        if result is not None:
            results.append(result)
    logger.info(f"Strategy '{strategy.name}' processed {len(results)} batches from '{input_path}'.")
    return results


def write_results(results: Sequence[BatchResult], output_path: str):
    """Writes one `<batch size> <average find length>` line per batch."""
    try:
        with open(output_path, 'w') as f:
            for result in results:
                f.write(f"{result.size} {result.average_length:.4f}\n")
        logger.info(f"Results saved successfully to '{output_path}'.")
    except OSError as e:
        logger.error(f"Failed to save results to '{output_path}': {e}")
        raise


def output_path_for(input_path: str, strategy_name: str) -> str:
    """Output file beside the input: `data.txt` becomes `double-data.out`."""
    path = Path(input_path)
    return str(path.with_name(f"{strategy_name}-{path.stem}.out"))


def process_file(input_path: str, output_path: Optional[str] = None, strategy='double') -> List[BatchResult]:
    """Runs an instruction file and writes its results."""
    strategy = get_strategy(strategy)
    if output_path is None:
        output_path = output_path_for(input_path, strategy.name)
    results = run_file(input_path, strategy)
    write_results(results, output_path)
    return results

# ==========================
# 3. Instruction Generation
# ==========================


def generate_access_pattern(pattern_type: str, size: int, n_finds: int,
                            rng: Optional[np.random.Generator] = None,
                            subset_size: int = 100) -> Tuple[List[int], List[int]]:
    """
    Generates the inserted keys and the looked up keys of a batch.

    Parameters:
        pattern_type (str): One of 'sequential', 'random', 'subset' or 'skewed'.
        size (int): Number of keys inserted (0 to size-1).
        n_finds (int): Number of finds to generate.
        rng (np.random.Generator): Random generator.
        subset_size (int): Number of distinct keys looked up by the 'subset' pattern.

    Returns:
        Tuple[List[int], List[int]]: Inserted keys and looked up keys.
    """
    rng = rng if rng is not None else np.random.default_rng()
    logger.debug(f"Generating access pattern: {pattern_type}, Size: {size}, Number of finds: {n_finds}")

    if pattern_type == 'sequential':
        inserts = np.arange(size)
        finds = np.resize(np.arange(size), n_finds) if size else np.empty(0, dtype=np.int64)
        return inserts.tolist(), finds.tolist()

    inserts = rng.permutation(size)
    if size == 0:
        return [], []
    if pattern_type == 'random':
        finds = rng.integers(0, size, n_finds)
    elif pattern_type == 'subset':
        subset = inserts[:min(subset_size, size)]
        finds = rng.choice(subset, n_finds)
    elif pattern_type == 'skewed':
        probabilities = rng.zipf(2, size).astype(float)
        probabilities = probabilities / probabilities.sum()
        finds = rng.choice(size, n_finds, p=probabilities)
    else:
        logger.warning(f"Unknown pattern type: {pattern_type}. Defaulting to random pattern.")
        finds = rng.integers(0, size, n_finds)
    return inserts.tolist(), finds.tolist()


def write_batches(path: str, sizes: Sequence[int], pattern_type: str = 'random',
                  finds_per_key: int = 5, seed: Optional[int] = None, subset_size: int = 100) -> str:
    """Writes an instruction file with one batch per size."""
    rng = np.random.default_rng(seed)
    os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
    try:
        with open(path, 'w') as f:
            for size in tqdm(sizes, desc=f"Generating ({pattern_type})"):
                inserts, finds = generate_access_pattern(
                    pattern_type, size, finds_per_key * size, rng, subset_size
                )
                f.write(f"# {size}\n")
                f.writelines(f"I {key}\n" for key in inserts)
                f.writelines(f"F {key}\n" for key in finds)
        logger.info(f"Instructions for {len(sizes)} batches saved to '{path}'.")
    except OSError as e:
        logger.error(f"Failed to write instructions to '{path}': {e}")
        raise
    return path

# ==========================
# 4. Strategy Comparison
# ==========================


def results_to_frame(results_by_strategy: Dict[str, List[BatchResult]]) -> pd.DataFrame:
    """Average find length per batch, one column per strategy, indexed by batch size."""
    columns = {name: [r.average_length for r in results] for name, results in results_by_strategy.items()}
    sizes = next(([r.size for r in results] for results in results_by_strategy.values()), [])
    df = pd.DataFrame(columns, index=pd.Index(sizes, name='batch_size'))
    return df


def compare_strategies(input_path: str, strategies: Sequence[str] = ('double', 'naive')) -> pd.DataFrame:
    """Runs an instruction file with every strategy and tabulates the average find lengths."""
    results = {name: run_file(input_path, name) for name in strategies}
    return results_to_frame(results)


def statistical_significance_tests(df: pd.DataFrame) -> dict:
    """
    Paired t-test of the average find lengths for every pair of strategies.

    Returns:
        dict: t statistic, p value and mean difference per pair.
    """
    logger.info("Performing statistical significance tests.")
    stats_results = {}
    for a, b in combinations(df.columns, 2):
        mean_diff = float((df[a] - df[b]).mean()) if len(df) else float('nan')
        if len(df) < 2:
            logger.warning(f"Not enough batches to compare '{a}' and '{b}'.")
            t_stat, p_value = float('nan'), float('nan')
        else:
            t_stat, p_value = stats.ttest_rel(df[a], df[b])
        stats_results[f"{a}_vs_{b}"] = {
            't_stat': float(t_stat),
            'p_value': float(p_value),
            'mean_diff': mean_diff,
        }
        logger.debug(f"Statistical Test for {a} vs {b}: t_stat = {t_stat:.4f}, p_value = {p_value:.4f}")
    return stats_results


def plot_find_lengths(df: pd.DataFrame, out_path: str):
    """Plots the average find length against the batch size for each strategy."""
    plt.figure(figsize=(10, 6))
    for column in df.columns:
        plt.plot(df.index, df[column], marker='o', label=column)
    plt.title('Average Find Length per Batch')
    plt.xlabel('Batch Size')
    plt.ylabel('Average Find Length')
    plt.legend()
    plt.tight_layout()
    plt.savefig(out_path)
    plt.close()
    logger.info(f"Find length plot saved as '{out_path}'.")


def save_results(data, filepath: str):
    """Saves data to a JSON file."""
    try:
        with open(filepath, 'w') as f:
            json.dump(data, f, indent=4)
        logger.info(f"Results saved successfully to '{filepath}'.")
    except OSError as e:
        logger.error(f"Failed to save results to '{filepath}': {e}")
        raise

# ==========================
# 5. Main Execution Flow
# ==========================


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Average find path lengths of splay strategies.")
    parser.add_argument('input', nargs='?', default='data.txt', help="Instruction file.")
    parser.add_argument('--generate', metavar='PATTERN', choices=['sequential', 'random', 'subset', 'skewed'],
                        help="Generate the instruction file first.")
    parser.add_argument('--sizes', type=int, nargs='+', help="Batch sizes of a generated file.")
    parser.add_argument('--seed', type=int, help="Seed of a generated file.")
    parser.add_argument('--strategies', nargs='+', choices=sorted(STRATEGIES), help="Strategies to run.")
    parser.add_argument('--results-dir', help="Directory for logs, tables and plots.")
    parser.add_argument('--plot', action='store_true', help="Save a plot of the find lengths.")
    return parser.parse_args(argv)


def main(argv=None):
    """
    Runs every strategy over the instruction file and writes `<strategy>-<name>.out`
    beside it, plus a comparison table and statistics under the results directory.
    """
    args = parse_args(argv)
    config = DEFAULT_CONFIG.copy()
    config.update({k: v for k, v in {
        'strategies': args.strategies,
        'pattern': args.generate,
        'sizes': args.sizes,
        'seed': args.seed,
        'results_dir': args.results_dir,
    }.items() if v is not None})

    results_dir = config['results_dir']
    os.makedirs(results_dir, exist_ok=True)
    setup_logging(os.path.join(results_dir, 'logs', 'experiment.log'))
    logger.info("=== Starting Splay Experiments ===")

    if args.generate:
        write_batches(args.input, config['sizes'], config['pattern'],
                      config['finds_per_key'], config['seed'], config['subset_size'])

    results = {}
    for name in config['strategies']:
        results[name] = process_file(args.input, strategy=name)

    df = results_to_frame(results)
    df.to_csv(os.path.join(results_dir, 'find_lengths.csv'))
    save_results(statistical_significance_tests(df), os.path.join(results_dir, 'significance.json'))
    if args.plot:
        matplotlib.use('Agg')
        plot_find_lengths(df, os.path.join(results_dir, 'find_lengths.png'))

    logger.info("=== Splay Experiments Completed ===")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
