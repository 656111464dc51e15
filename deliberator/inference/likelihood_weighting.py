"""
Approximate inference by likelihood weighting

Answers probability and utility queries against a state graph by running many
independent weighted trials on a bounded worker pool:
- evidenced chance nodes are fixed and weight the trial by their likelihood
- other chance nodes are sampled given their already-sampled parents
- action nodes cycle through every action combination (round-robin)
- utility nodes add their value to the trial's utility

The engine is anytime: when the deadline passes or the caller's token is
cancelled, only the trials completed so far are aggregated.
"""

from __future__ import annotations

import itertools
import logging
import math
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from ..core.anytime import CancellationToken
from ..core.exceptions import InferenceError
from ..graph.assignment import NONE, Assignment
from ..graph.nodes import Node, NodeKind
from ..graph.tables import ProbabilityTable, UtilityTable
from .types import WeightedSample

if TYPE_CHECKING:
    from ..graph.state import StateGraph

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.02


def normalised_weights(samples: Sequence[WeightedSample]) -> np.ndarray:
    """
    Normalised importance weights, computed in log space

    The maximum log-weight is subtracted before exponentiating. When no sample
    carries a finite weight the distribution falls back to uniform.
    """
    if not samples:
        return np.zeros(0)
    log_weights = np.array([s.log_weight for s in samples], dtype=float)
    finite = np.isfinite(log_weights)
    if not finite.any():
        logger.warning(f"⚠️ Degenerate weights over {len(samples)} samples, using uniform weights")
        return np.full(len(samples), 1.0 / len(samples))
    shifted = np.where(finite, log_weights - log_weights[finite].max(), -np.inf)
    weights = np.exp(shifted)
    return weights / weights.sum()


def redraw_samples(samples: Sequence[WeightedSample], rng: np.random.Generator) -> List[WeightedSample]:
    """
    Weighted bootstrap: draw len(samples) samples with replacement

    Each sample is selected with probability proportional to its normalised
    weight; the redrawn samples are unweighted (log-weight 0).
    """
    if not samples:
        return []
    weights = normalised_weights(samples)
    indices = rng.choice(len(samples), size=len(samples), replace=True, p=weights)
    return [WeightedSample(samples[i].assignment, 0.0, samples[i].utility) for i in indices]


class LikelihoodWeighting:
    """
    Likelihood-weighted sampling engine with a bounded worker pool

    Configuration keys (the `sampling` config section): nb_samples,
    max_sampling_time (seconds), max_workers, batch_size, seed.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.nb_samples = int(config.get('nb_samples', 1000))
        self.max_sampling_time = float(config.get('max_sampling_time', 0.25))
        self.max_workers = int(config.get('max_workers', 4))
        self.batch_size = int(config.get('batch_size', 50))
        self._seeds = np.random.SeedSequence(config.get('seed'))
        self._lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None

        logger.info(f"LikelihoodWeighting initialized: nb_samples={self.nb_samples}, "
                    f"max_sampling_time={self.max_sampling_time:.3f}s, workers={self.max_workers}")

    # ------------------------------------------------------------------ Queries
    def query_prob(self,
                   graph: "StateGraph",
                   variables: Iterable[str],
                   evidence: Optional[Mapping] = None,
                   nb_samples: Optional[int] = None,
                   max_time: Optional[float] = None,
                   token: Optional[CancellationToken] = None) -> ProbabilityTable:
        """Joint distribution of `variables` given the graph's evidence and `evidence`"""
        targets = self._resolve_targets(graph, variables)
        if not targets:
            return ProbabilityTable()

        samples = self.sample(graph, evidence, nb_samples, max_time, token)
        table = ProbabilityTable()
        for sample, weight in zip(samples, normalised_weights(samples)):
            if weight > 0:
                table.add_row(sample.assignment.project(targets), float(weight))
        return table.normalise()

    def query_util(self,
                   graph: "StateGraph",
                   action_variables: Iterable[str],
                   evidence: Optional[Mapping] = None,
                   nb_samples: Optional[int] = None,
                   max_time: Optional[float] = None,
                   token: Optional[CancellationToken] = None) -> UtilityTable:
        """Expected utility of each assignment of `action_variables`"""
        targets = self._resolve_targets(graph, action_variables)
        if not targets:
            return UtilityTable()

        samples = self.sample(graph, evidence, nb_samples, max_time, token)
        totals: Dict[Assignment, float] = {}
        weighted: Dict[Assignment, float] = {}
        for sample, weight in zip(samples, normalised_weights(samples)):
            key = sample.assignment.project(targets)
            totals[key] = totals.get(key, 0.0) + weight
            weighted[key] = weighted.get(key, 0.0) + weight * sample.utility

        table = UtilityTable()
        for key, total in totals.items():
            if total > 0:
                table.set_util(key, weighted[key] / total)
            else:
                logger.debug(f"No support for {key} under the evidence, dropping it")
        return table

    def utility_samples(self,
                        graph: "StateGraph",
                        evidence: Optional[Mapping] = None,
                        nb_samples: Optional[int] = None,
                        max_time: Optional[float] = None,
                        token: Optional[CancellationToken] = None) -> List[WeightedSample]:
        """Raw weighted samples of a utility query, for callers that reweight them"""
        return self.sample(graph, evidence, nb_samples, max_time, token)

    # ----------------------------------------------------------------- Sampling
    def sample(self,
               graph: "StateGraph",
               evidence: Optional[Mapping] = None,
               nb_samples: Optional[int] = None,
               max_time: Optional[float] = None,
               token: Optional[CancellationToken] = None) -> List[WeightedSample]:
        """
        Run up to `nb_samples` weighted trials within `max_time` seconds

        Returns the completed trials in submission order. The result is never
        empty: if no trial finished before cancellation, one trial is run
        synchronously.
        """
        start_time = time.time()
        budget = int(nb_samples or self.nb_samples)
        full_evidence = graph.evidence.union(evidence or {})
        order = [graph.get_node(name) for name in graph.topological_order()]
        combinations = self._action_combinations(order, full_evidence, budget)
        deadline = CancellationToken(max_time if max_time is not None else self.max_sampling_time, parent=token)

        futures: List[Future] = []
        executor = self._get_executor()
        for offset in range(0, budget, self.batch_size):
            size = min(self.batch_size, budget - offset)
            futures.append(executor.submit(self._run_batch, order, full_evidence, combinations,
                                           offset, size, self._spawn_rng(), deadline))
        self._await(futures, deadline)

        samples: List[WeightedSample] = []
        for future in futures:
            if future.cancelled():
                continue
            error = future.exception()
            if error is not None:
                raise InferenceError(f"Sampling trial failed: {error}") from error
            samples.extend(future.result())

        if not samples:
            logger.debug("No trial completed before cancellation, running one synchronously")
            samples.append(self._run_trial(order, full_evidence, combinations[0], self._spawn_rng()))

        logger.debug(f"Collected {len(samples)}/{budget} samples in {(time.time() - start_time) * 1000:.1f}ms")
        return samples

    def close(self) -> None:
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True, cancel_futures=True)
                self._executor = None

    # ------------------------------------------------------------------ Helpers
    def _resolve_targets(self, graph: "StateGraph", variables: Iterable[str]) -> List[str]:
        targets = []
        for variable in variables:
            if graph.has_node(variable):
                targets.append(variable)
            else:
                logger.warning(f"⚠️ Query variable {variable} is not in the graph, ignoring it")
        return targets

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="sampler")
            return self._executor

    def _spawn_rng(self) -> np.random.Generator:
        with self._lock:
            return np.random.default_rng(self._seeds.spawn(1)[0])

    def _await(self, futures: List[Future], deadline: CancellationToken) -> None:
        pending = set(futures)
        while pending and not deadline.is_cancelled():
            _, pending = wait(pending, timeout=_POLL_INTERVAL, return_when=FIRST_COMPLETED)
        if pending:
            deadline.cancel()
            for future in pending:
                future.cancel()
            # running batches stop at their next trial boundary
            wait(pending)

    def _action_combinations(self, order: Sequence[Node], evidence: Assignment, budget: int) -> List[Assignment]:
        free = [node for node in order if node.kind is NodeKind.ACTION and node.name not in evidence]
        domains = [[(node.name, value) for value in (node.values or [NONE])] for node in free]
        combinations = [Assignment(pairs) for pairs in itertools.islice(itertools.product(*domains), max(budget, 1))]
        return combinations or [Assignment()]

    def _run_batch(self,
                   order: Sequence[Node],
                   evidence: Assignment,
                   combinations: Sequence[Assignment],
                   offset: int,
                   size: int,
                   rng: np.random.Generator,
                   deadline: CancellationToken) -> List[WeightedSample]:
        results = []
        for index in range(offset, offset + size):
            if deadline.is_cancelled():
                break
            results.append(self._run_trial(order, evidence, combinations[index % len(combinations)], rng))
        return results

    def _run_trial(self,
                   order: Sequence[Node],
                   evidence: Assignment,
                   actions: Assignment,
                   rng: np.random.Generator) -> WeightedSample:
        values: Dict[str, Any] = {}
        log_weight = 0.0
        utility = 0.0
        for node in order:
            condition = Assignment({p: values[p] for p in node.parents if p in values})
            if node.kind is NodeKind.CHANCE:
                if node.name in evidence:
                    value = evidence[node.name]
                    prob = node.distribution.prob(condition, value)
                    log_weight += math.log(prob) if prob > 0 else -math.inf
                else:
                    value = node.distribution.sample(condition, rng)
                values[node.name] = value
            elif node.kind is NodeKind.ACTION:
                values[node.name] = evidence[node.name] if node.name in evidence else actions.get(node.name, NONE)
            elif node.kind is NodeKind.UTILITY:
                utility += node.function.utility(condition)
            else:
                raise InferenceError(f"Unknown node kind {node.kind} for {node.name}")
        return WeightedSample(Assignment(values), log_weight, utility)
