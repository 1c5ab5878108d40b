import logging

import numpy as np
import pytest
import torch

from fast_state.engine.state.config import LoadConfig
from fast_state.engine.state.errors import IncompleteLoadError, LoadError
from fast_state.engine.state.load import LoadCache, StructureLoader, load
from fast_state.engine.state.safe_load import SafeLoad
from tests.utils.models import Dense, TiedEmbeddingModel
from tests.utils.utils import Assert


@pytest.fixture
def complete_config():
    return LoadConfig(require_complete=True)


def test_incomplete_load(complete_config):
    destination = {"a": torch.zeros(2), "b": {"c": torch.zeros(3)}}
    with pytest.raises(IncompleteLoadError, match="b.c"):
        load(destination, {"a": torch.ones(2)}, config=complete_config)
    # The validation happens at the end, so the matched arrays are loaded.
    Assert.all_equal(destination["a"], torch.ones(2))
    assert issubclass(IncompleteLoadError, LoadError)


def test_incomplete_load_allowed():
    destination = {"a": torch.zeros(2), "b": {"c": torch.zeros(3)}}
    load(destination, {"a": torch.ones(2)})
    Assert.all_equal(destination["b"]["c"], torch.zeros(3))


def test_incomplete_load_module(complete_config):
    with pytest.raises(IncompleteLoadError, match="bias"):
        load(Dense(5, 4), {"weight": torch.ones(4, 5)}, config=complete_config)


def test_incomplete_load_ignores_non_arrays(complete_config):
    # Hyperparameters, activations and placeholders never need a value.
    destination = Dense(5, 4, bias=False)
    load(destination, {"weight": torch.ones(4, 5)}, config=complete_config)
    Assert.all_equal(destination.weight, torch.ones(4, 5))


def test_incomplete_load_filtered(complete_config):
    destination = {"weight": torch.zeros(2), "step": np.zeros(1)}
    load(destination, {"weight": torch.ones(2)}, lambda x: not isinstance(x, np.ndarray), config=complete_config)
    Assert.all_equal(destination["weight"], torch.ones(2))


def test_incomplete_load_placeholder_source(complete_config):
    # An inactive source still counts as a value.
    destination = {"bias": torch.ones(2)}
    load(destination, {"bias": False}, config=complete_config)
    Assert.all_equal(destination["bias"], torch.ones(2))


@pytest.mark.parametrize(
    "source",
    (
        {"x": {}, "y": torch.ones(2)},
        {"x": {"w": torch.ones(2)}},
    ),
)
def test_incomplete_load_tied(complete_config, source):
    # The array is missing at one position, but is loaded at the other.
    weight = torch.zeros(2)
    load({"x": {"w": weight}, "y": weight}, source, config=complete_config)
    Assert.all_equal(weight, torch.ones(2))


def test_incomplete_load_tied_module(complete_config):
    source = TiedEmbeddingModel()
    destination = TiedEmbeddingModel()
    load(
        destination,
        {
            "embedding": {"weight": source.embedding.weight},
            "norm": {"weight": source.norm.weight, "bias": source.norm.bias},
        },
        config=complete_config,
    )
    Assert.all_equal(destination.head.weight, source.embedding.weight)


def test_incomplete_load_message(complete_config):
    with pytest.raises(IncompleteLoadError, match=r"2 destination arrays were not loaded") as error:
        load(
            {"a": torch.zeros(2), "b": [np.zeros((2, 3))], "c": torch.zeros(1)},
            {"c": torch.ones(1)},
            config=complete_config,
        )
    Assert.incl("`b.0` of shape (2, 3)", str(error.value))


def test_load_summary(caplog):
    caplog.set_level(logging.INFO, logger="fast_state")
    load({"weight": torch.zeros(2, 3), "bias": torch.zeros(3)}, {"weight": torch.ones(2, 3), "bias": torch.ones(3)})
    Assert.incl("9 state entries loaded successfully (2 arrays)", caplog.messages)


def test_load_summary_disabled(caplog):
    caplog.set_level(logging.INFO, logger="fast_state")
    load({"weight": torch.zeros(2)}, {"weight": torch.ones(2)}, config=LoadConfig(log_summary=False))
    Assert.eq(caplog.messages, [])


def test_load_error_not_logged(caplog, complete_config):
    caplog.set_level(logging.INFO, logger="fast_state")
    with pytest.raises(IncompleteLoadError):
        load({"weight": torch.zeros(2)}, {}, config=complete_config)
    Assert.eq([record.levelno for record in caplog.records], [logging.ERROR])


def test_structure_loader(complete_config):
    loader = StructureLoader(complete_config)
    Assert.is_(loader.config, complete_config)
    destination = {"weight": torch.zeros(2)}
    Assert.is_(loader.load(destination, {"weight": torch.ones(2)}), destination)
    Assert.all_equal(destination["weight"], torch.ones(2))


def test_safe_load_counters():
    with SafeLoad(LoadConfig(), LoadCache()) as context:
        context.mark_as_loaded(6, ("a",))
        context.mark_as_loaded(2, ("b",))
    Assert.eq(context.loaded, 8)
    Assert.eq(context.loaded_arrays, 2)


def test_safe_load_reset():
    context = SafeLoad(LoadConfig(), LoadCache())
    with context:
        context.mark_as_loaded(6)
    with context:
        pass
    Assert.eq(context.loaded, 0)


def test_safe_load_unmatched(complete_config):
    cache = LoadCache()
    weight = torch.zeros(2)
    with SafeLoad(complete_config, cache) as context:
        assert context.track_unmatched
        context.mark_as_unmatched(weight, ("a",))
        cache.add(weight, torch.ones(2))
    with pytest.raises(IncompleteLoadError, match="`a`"):
        with SafeLoad(complete_config, cache) as context:
            context.mark_as_unmatched(torch.zeros(2), ("a",))


def test_safe_load_error_propagates(complete_config):
    with pytest.raises(RuntimeError):
        with SafeLoad(complete_config, LoadCache()) as context:
            context.mark_as_unmatched(torch.zeros(2), ("a",))
            raise RuntimeError()
