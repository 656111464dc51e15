from __future__ import annotations

from typing import Any, Dict

import pytest

from deliberator.core.config import Config
from deliberator.inference.likelihood_weighting import LikelihoodWeighting


@pytest.fixture
def sampling() -> Dict[str, Any]:
    # generous time budget so statistical tests never depend on machine speed
    return {"nb_samples": 2000, "max_sampling_time": 5.0, "max_workers": 2, "batch_size": 100, "seed": 7}


@pytest.fixture
def engine(sampling):
    lw = LikelihoodWeighting(sampling)
    yield lw
    lw.close()


@pytest.fixture
def config(tmp_path, monkeypatch) -> Config:
    monkeypatch.chdir(tmp_path)
    cfg = Config()
    cfg.set("sampling.nb_samples", 500)
    cfg.set("sampling.max_sampling_time", 5.0)
    cfg.set("sampling.max_workers", 2)
    cfg.set("sampling.seed", 11)
    cfg.set("planning.timeout", 30.0)
    return cfg
