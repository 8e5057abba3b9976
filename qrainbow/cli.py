"""
Command line entry point: estimate the rainbow option indicator probability.

    python -m qrainbow --epsilon 0.05 --alpha 0.05 --shots 100 --seed 7
"""

import argparse
import logging
from typing import List, Optional

from qrainbow.config import SamplingConfig
from qrainbow.exceptions import QRainbowError
from qrainbow.estimation.iae import IterativeAmplitudeEstimation
from qrainbow.estimation.mlae import MaximumLikelihoodAmplitudeEstimation
from qrainbow.estimation.problem import RainbowEstimationProblem
from qrainbow.estimation.sampling import AerBackend, EngineBackend, QiskitStatevectorBackend
from qrainbow.rainbow.classical import expected_indicator_probability

logger = logging.getLogger(__name__)

BACKENDS = {
    'engine': EngineBackend,
    'statevector': QiskitStatevectorBackend,
    'aer': AerBackend,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='qrainbow',
        description='Rainbow option amplitude estimation'
    )
    parser.add_argument('--method', type=str, default='iae', choices=['iae', 'mlae'],
                        help='Estimation driver')
    parser.add_argument('--epsilon', type=float, default=0.05,
                        help='Target half-width of the interval (IAE)')
    parser.add_argument('--alpha', type=float, default=0.05,
                        help='Failure probability')
    parser.add_argument('--shots', type=int, default=100,
                        help='Shots per round')
    parser.add_argument('--max-power', type=int, default=None,
                        help='Largest Grover power (IAE)')
    parser.add_argument('--schedule', type=int, nargs='+', default=[0, 1, 2, 4],
                        help='Grover powers (MLAE)')
    parser.add_argument('--backend', type=str, default='engine', choices=sorted(BACKENDS),
                        help='Sampling backend')
    parser.add_argument('--retries', type=int, default=3,
                        help='Retries for transient sampling failures')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    try:
        if args.method == 'iae':
            driver = IterativeAmplitudeEstimation(
                epsilon_target=args.epsilon,
                alpha=args.alpha,
                shots=args.shots,
                max_power=args.max_power,
            )
        else:
            driver = MaximumLikelihoodAmplitudeEstimation(
                args.schedule, shots=args.shots, alpha=args.alpha
            )

        problem = RainbowEstimationProblem(
            backend=BACKENDS[args.backend](),
            sampling_config=SamplingConfig(max_retries=args.retries),
        )
        exact = expected_indicator_probability()
        logger.info(f"Exact indicator probability (classical enumeration): {exact:.6f}")

        result = driver.estimate(problem, seed=args.seed)
    except (QRainbowError, MemoryError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    lo, hi = result.confidence_interval
    print(f"estimate   {result.estimation:.6f}")
    print(f"interval   [{lo:.6f}, {hi:.6f}]  (alpha={result.alpha})")
    print(f"exact      {exact:.6f}")
    print(f"rounds     {result.num_rounds}  powers={result.powers}")
    print(f"queries    {result.oracle_queries}")
    return 0


__all__ = ['build_parser', 'main']
